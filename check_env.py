#!/usr/bin/env python3
"""Check the .env file and report which external services are configured."""

from pathlib import Path
import os
import sys

SECRET_KEYS = ("SCOOP_SUPABASE_KEY", "SCOOP_GOOGLE_MAPS_API_KEY", "SCOOP_STRIPE_API_KEY")

TEMPLATE = """# Supabase (subscriptions, jobs, routes)
SCOOP_SUPABASE_URL=https://your-project-id.supabase.co
SCOOP_SUPABASE_KEY=your-service-role-key-here

# Google Maps (Distance Matrix + Directions)
SCOOP_GOOGLE_MAPS_API_KEY=your-maps-key-here
# SCOOP_MAPS_BATCH_SIZE=10

# Stripe
SCOOP_STRIPE_API_KEY=sk_test_your-key-here

# API
SCOOP_API_PREFIX=/api
SCOOP_LOG_LEVEL=INFO
# SCOOP_FRONTEND_ALLOWED_ORIGINS - JSON array or comma-separated list
# SCOOP_CANCELLATION_NOTICE_DAYS=30
"""


def _mask(value: str) -> str:
    if len(value) > 20:
        return value[:12] + "..." + value[-6:]
    return "***"


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Scoop Ops Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"❌ .env file NOT found at: {env_file}")
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"✅ Created template .env file at: {env_file}")
        print("⚠️  Please edit .env and add your credentials, then run this again.")
        return

    print(f"✅ Found .env file at: {env_file}")
    print("-" * 60)
    for line in env_file.read_text(encoding="utf-8").splitlines():
        name, sep, value = line.partition("=")
        if sep and name.strip() in SECRET_KEYS and value.strip():
            print(f"{name}={_mask(value.strip())}")
        else:
            print(line)
    print("-" * 60)
    print()

    for name in ("SCOOP_SUPABASE_URL", *SECRET_KEYS):
        print(f"{'✅' if os.getenv(name) else '➖'} {name} {'set' if os.getenv(name) else 'not set'} in environment")
    print()

    try:
        sys.path.insert(0, str(project_root / "src"))
        from scoopops.config import settings
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print("Make sure you're running this from the project root directory")
        return

    checks = {
        "Supabase": bool(settings.supabase_url and settings.supabase_key),
        "Google Maps": bool(settings.google_maps_api_key),
        "Stripe": bool(settings.stripe_api_key),
    }
    for service, configured in checks.items():
        print(f"{'✅' if configured else '❌'} {service} {'configured' if configured else 'NOT configured'}")

    if not all(checks.values()):
        print()
        print("Troubleshooting:")
        print("1. Make sure .env file exists in project root")
        print("2. Make sure variables start with SCOOP_ prefix")
        print("3. Restart the backend after editing .env")


if __name__ == "__main__":
    main()
