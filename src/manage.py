"""Pharmacy database management CLI.

Creates or drops the tables behind carts, orders, products and the order
tracking view. The database is read from DATABASE_URL (see domain.toml).

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

from pharmacy.domain import pharmacy
from pharmacy.utils.db import drop_db, setup_db


def main():
    parser = argparse.ArgumentParser(description="Pharmacy database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    pharmacy.init()
    if args.command == "setup-db":
        providers = setup_db(pharmacy)
        print(f"Schema ready on: {', '.join(providers) or 'no SQL providers'}")
    elif args.command == "drop-db":
        providers = drop_db(pharmacy)
        print(f"Schema dropped on: {', '.join(providers) or 'no SQL providers'}")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
