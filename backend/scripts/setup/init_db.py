#!/usr/bin/env python3
"""
Script: init_db.py
Purpose: Create the storefront schema (products, stock, orders, carts, promo codes, roles)

Tables are declared in storefront/models and created with SQLAlchemy.
Existing tables are left untouched.

Usage:
    cd backend && source venv/bin/activate
    python scripts/setup/init_db.py [--seed-promos]

Options:
    --seed-promos    Insert the default WELCOME10 and SUMMER20 promo codes
"""

import argparse
import sys
from pathlib import Path

# Add backend to path
BACKEND_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from dotenv import load_dotenv

# Load environment
env_path = BACKEND_DIR / '.env.development'
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv(BACKEND_DIR / '.env')

from storefront.core.database import init_db, transaction
from storefront.core.errors import StorefrontError

DEFAULT_PROMOS = [
    ("WELCOME10", 10),
    ("SUMMER20", 20),
]


def print_header(title: str):
    """Print formatted header"""
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}\n")


def seed_promos():
    with transaction() as cursor:
        for code, percent in DEFAULT_PROMOS:
            cursor.execute("""
                INSERT INTO promo_codes (code, discount_percent, is_active)
                VALUES (%s, %s, true)
                ON CONFLICT (code) DO NOTHING
            """, (code, percent))
            print(f"  ✅ {code}: {percent}%")


def main():
    parser = argparse.ArgumentParser(description="Create the storefront schema")
    parser.add_argument("--seed-promos", action="store_true", help="Insert default promo codes")
    args = parser.parse_args()

    print_header("Storefront schema")

    try:
        init_db()
        print("  ✅ Tables created")

        if args.seed_promos:
            print("\nSeeding promo codes...")
            seed_promos()
    except StorefrontError as e:
        print(f"  ❌ {e.message}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
