#!/usr/bin/env python3
# =============================================================================
# scripts/unzip_lut_assets.py - Extract LUT Files From Stored Packs
# =============================================================================
# Creates lutPreviews documents for LUT packs that were uploaded before
# per-LUT extraction existed. LUTs already present (compared by normalized
# name) are skipped, so the script is safe to re-run.
#
# Usage:
#   python -m scripts.unzip_lut_assets --asset-id <assetId> [--dry-run]
#   python -m scripts.unzip_lut_assets --all [--dry-run]
# =============================================================================

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract .cube files from LUT pack ZIPs")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--asset-id", help="Process a single asset")
    target.add_argument("--all", action="store_true", help="Process every LUT asset")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be created")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    from core.services.maintenance_service import unzip_lut_assets

    summary = unzip_lut_assets(asset_id=None if args.all else args.asset_id, dry_run=args.dry_run)
    if not summary["assets"]:
        logger.warning("No LUT assets with a stored ZIP found")
    print(json.dumps(summary, indent=2))
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
