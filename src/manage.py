"""Ordering management CLI.

Provides commands to create and drop database schemas and to run the
stale-order sweep from an external scheduler (cron).

Usage:
    python src/manage.py setup-db              # Create all tables
    python src/manage.py drop-db               # Drop all tables
    python src/manage.py cancel-stale-orders   # Cancel unpaid gateway orders
"""

import argparse
import sys


def setup_databases():
    """Create the ordering and catalog schemas."""
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Creating database schema...")
    setup_db(ordering)
    print("Done.")


def drop_databases():
    """Drop the ordering and catalog schemas."""
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Dropping database schema...")
    drop_db(ordering)
    print("Done.")


def sweep_stale_orders(timeout_minutes=None):
    """Cancel gateway orders still unpaid past the timeout."""
    from ordering.domain import ordering
    from ordering.order.expiry import cancel_stale_orders
    from ordering.utils.logging import configure_logging

    configure_logging()
    ordering.init()
    with ordering.domain_context():
        result = cancel_stale_orders(timeout_minutes=timeout_minutes)

    print(f"Cancelled {result.cancelled} of {result.total} stale orders ({result.failed} failed).")
    return 1 if result.failed else 0


def main():
    parser = argparse.ArgumentParser(description="Ordering management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    sweep_parser = subparsers.add_parser("cancel-stale-orders", help="Cancel unpaid gateway orders")
    sweep_parser.add_argument(
        "--timeout-minutes",
        type=int,
        default=None,
        help="Override STALE_ORDER_TIMEOUT_MINUTES",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "cancel-stale-orders":
        sys.exit(sweep_stale_orders(args.timeout_minutes))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
