"""Storefront management CLI.

Usage:
    python src/manage.py setup-db       # Create all tables
    python src/manage.py drop-db        # Drop all tables
    python src/manage.py expire-coins   # Write off wallet lots past their expiry
"""

import argparse
import sys


def _domain():
    from storefront.domain import storefront

    storefront.init()
    return storefront


def setup_database():
    from storefront.utils.db import setup_db

    domain = _domain()
    print("Creating storefront database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from storefront.utils.db import drop_db

    domain = _domain()
    print("Dropping storefront database schema...")
    drop_db(domain)
    print("Done.")


def expire_coins():
    from storefront.wallet.ledger import sweep_expired_coins

    domain = _domain()
    with domain.domain_context():
        summary = sweep_expired_coins()
    print(
        f"Scanned {summary['wallets_scanned']} wallets, "
        f"expired {summary['coins_expired']} coins in {summary['wallets_touched']}, "
        f"skipped {summary['wallets_skipped']} busy wallets."
    )


def main():
    from storefront.utils.logging import configure_logging

    parser = argparse.ArgumentParser(description="Lelekart storefront management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("expire-coins", help="Expire wallet coin lots that are past due")

    args = parser.parse_args()
    configure_logging()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "expire-coins":
        expire_coins()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
