"""Supabase client for the station registry."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


# Example usage patterns:
#
# from .db.supabase import get_supabase_client
#
# # Upsert keyed by station id
# get_supabase_client().table('stations').upsert({
#     'id': '12345',
#     'name': 'Esso',
#     'lat': 43.9,
#     'lng': -78.87,
# }, on_conflict='id').execute()
#
# # Batched lookup
# get_supabase_client().table('stations') \
#     .select('*') \
#     .in_('id', ['12345', '67890']) \
#     .execute()
