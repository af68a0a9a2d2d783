#!/usr/bin/env python3
"""
Script: backfill_is_read.py
Purpose: Give every legacy order an explicit is_read flag

Orders written before the flag existed have is_read = NULL. The admin
notification feed merges them in with a second query while
NOTIFICATIONS_INCLUDE_LEGACY is on. After this script:
- pending legacy orders are unread (is_read = false) and appear in the live feed
- every other legacy order is read (is_read = true)

Then set NOTIFICATIONS_INCLUDE_LEGACY=false.

Usage:
    cd backend && source venv/bin/activate
    python scripts/migrations/backfill_is_read.py [--dry-run]

Options:
    --dry-run    Show how many orders would change without writing
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

import psycopg2

from storefront.core.database import get_db_connection_dict_with_retry
from storefront.core.errors import StorefrontError
from storefront.repositories.order_repository import OrderRepository


def print_header(title: str):
    """Print formatted header"""
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}\n")


def count_legacy_orders() -> dict:
    conn = get_db_connection_dict_with_retry()
    cursor = conn.cursor()
    try:
        cursor.execute("""
            SELECT status, COUNT(*) as count
            FROM orders
            WHERE is_read IS NULL
            GROUP BY status
            ORDER BY status
        """)
        return {row['status']: row['count'] for row in cursor.fetchall()}
    finally:
        cursor.close()
        conn.close()


def main():
    parser = argparse.ArgumentParser(description="Backfill orders.is_read on legacy rows")
    parser.add_argument("--dry-run", action="store_true", help="Only report what would change")
    args = parser.parse_args()

    print_header("Backfill orders.is_read")

    try:
        counts = count_legacy_orders()
        if not counts:
            print("  ✅ No legacy orders, nothing to do")
            return 0

        for status, count in counts.items():
            target = "unread" if status == "pending" else "read"
            print(f"  {status:<12} {count:>6} -> {target}")

        if args.dry_run:
            print("\n  (dry run, nothing written)")
            return 0

        updated = OrderRepository().backfill_is_read()
        print(f"\n  ✅ Backfilled {updated} order(s)")
        print("  Set NOTIFICATIONS_INCLUDE_LEGACY=false to drop the legacy query")
    except StorefrontError as e:
        print(f"  ❌ {e.message}")
        return 1
    except psycopg2.Error as e:
        print(f"  ❌ Database error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
