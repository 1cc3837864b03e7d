#!/usr/bin/env python3
"""Helper script to check and create the .env file for external services."""

from pathlib import Path
import os
import sys

TEMPLATE = """# Supabase station registry (optional - falls back to process memory)
# Get these from: https://supabase.com/dashboard → Your Project → Settings → API
FUELSCOUT_SUPABASE_URL=https://your-project-id.supabase.co
FUELSCOUT_SUPABASE_KEY=your-service-role-key-here

# Google Maps platform: geocoding, places and distance matrix
FUELSCOUT_GOOGLE_API_KEY=your-google-api-key

# API Configuration
FUELSCOUT_API_PREFIX=/api

# Harvesting pacing and block detection
# FUELSCOUT_BLOCK_THRESHOLD=3
# FUELSCOUT_BLOCK_COOLDOWN_SECONDS=120
# FUELSCOUT_BROWSER_HEADLESS=true
"""

REQUIRED = ("FUELSCOUT_GOOGLE_API_KEY",)
OPTIONAL = ("FUELSCOUT_SUPABASE_URL", "FUELSCOUT_SUPABASE_KEY")


def _mask(value: str) -> str:
    return value[:12] + "..." if len(value) > 12 else value


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Fuel Scout Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"❌ .env file NOT found at: {env_file}")
        print("Creating template .env file...")
        with open(env_file, "w", encoding="utf-8") as f:
            f.write(TEMPLATE)
        print(f"✅ Created .env file at: {env_file}")
        print("⚠️  Please edit .env and add your credentials!")
        return

    print(f"✅ Found .env file at: {env_file}")
    print()

    for name in REQUIRED + OPTIONAL:
        value = os.getenv(name)
        marker = "✅" if value else ("❌" if name in REQUIRED else "➖")
        print(f"{marker} {name}: {_mask(value) if value else 'not set in environment'}")
    print()

    print("Testing config loading...")
    try:
        sys.path.insert(0, str(project_root / "src"))
        from fuelscout.config import settings

        print(f"{'✅' if settings.google_api_key else '❌'} Google API key loaded")
        if settings.supabase_url and settings.supabase_key:
            print("✅ Supabase registry configured")
        else:
            print("➖ Supabase not configured, registry will live in process memory")
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print("Make sure you're running this from the project root directory")


if __name__ == "__main__":
    main()
