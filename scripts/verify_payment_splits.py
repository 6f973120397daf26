#!/usr/bin/env python3
# =============================================================================
# scripts/verify_payment_splits.py - Audit Marketplace Platform Fees
# =============================================================================
# Compares each recent order's stored application_fee_amount with the fee
# the configured CCA_PLATFORM_FEE_BPS would charge. Exits non-zero when any
# order is off by more than a cent.
#
# Usage:
#   python -m scripts.verify_payment_splits [--limit 50] [--bps 300]
# =============================================================================

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify platform fee splits on recent orders")
    parser.add_argument("--limit", type=int, default=50, help="Most recent orders to check")
    parser.add_argument("--bps", type=int, default=None, help="Fee in basis points (default: configured)")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    from core.services.maintenance_service import verify_payment_splits

    report = verify_payment_splits(limit=args.limit, bps=args.bps)
    logger.info(f"Checked {report['checked']} orders, {report['mismatched']} mismatched")
    print(json.dumps(report, indent=2))
    return 1 if report["mismatched"] else 0


if __name__ == "__main__":
    sys.exit(main())
