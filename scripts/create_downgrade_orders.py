#!/usr/bin/env python3
# =============================================================================
# scripts/create_downgrade_orders.py - Record Historical Plan Downgrades
# =============================================================================
# Downgrades made in the Stripe dashboard (or before plan-change orders were
# recorded) leave only a credit invoice. This finds those invoices and adds
# the missing subscription_change orders so billing history is complete.
#
# Usage:
#   python -m scripts.create_downgrade_orders [--dry-run]
# =============================================================================

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create subscription_change orders from Stripe credit invoices")
    parser.add_argument("--dry-run", action="store_true", help="Report orders without creating them")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    from core.services.maintenance_service import create_downgrade_orders

    summary = create_downgrade_orders(dry_run=args.dry_run)
    logger.info(
        f"{'[dry run] ' if args.dry_run else ''}{summary['created']} created, "
        f"{summary['skipped']} already recorded across {summary['users']} members"
    )
    print(json.dumps(summary, indent=2))
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
