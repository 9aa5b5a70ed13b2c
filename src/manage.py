"""Checkout management CLI.

Usage:
    python src/manage.py setup-db            # Create all tables
    python src/manage.py drop-db             # Drop all tables
    python src/manage.py reconcile-coupons   # Bring coupon usage counters in line with orders
"""

import argparse
import sys


def setup_databases():
    """Create database schemas for the checkout domain."""
    from checkout.domain import checkout
    from checkout.utils.db import setup_db

    print("Initializing checkout domain...")
    checkout.init()
    touched = setup_db(checkout)
    print(f"  Schema ready for: {', '.join(touched) or 'no relational providers'}.")
    print("Done.")


def drop_databases():
    """Drop database schemas for the checkout domain."""
    from checkout.domain import checkout
    from checkout.utils.db import drop_db

    print("Initializing checkout domain...")
    checkout.init()
    touched = drop_db(checkout)
    print(f"  Schema dropped for: {', '.join(touched) or 'no relational providers'}.")
    print("Done.")


def reconcile_coupons():
    """Redeem coupons for stored orders whose redemption was deferred."""
    from checkout.coupon.reconciliation import CouponReconciler
    from checkout.domain import checkout

    checkout.init()
    with checkout.domain_context():
        entries = CouponReconciler().reconcile()

    for entry in entries:
        line = (
            f"  {entry.code}: recorded={entry.recorded} pending={entry.pending}"
            f" redeemed={entry.redeemed} now={entry.adjusted_to}"
        )
        if entry.overflow:
            line += f" OVERFLOW={entry.overflow}"
        print(line)
    print(f"Reconciled {len(entries)} coupon(s).")
    return entries


def main(argv=None):
    parser = argparse.ArgumentParser(description="Checkout management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("reconcile-coupons", help="Reconcile coupon usage counters with orders")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "reconcile-coupons":
        reconcile_coupons()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
