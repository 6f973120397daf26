#!/usr/bin/env python3
# =============================================================================
# scripts/unzip_overlay_assets.py - Extract Overlays From Stored Packs
# =============================================================================
# Creates overlays items (with mp4 conversions and 720p previews) for
# overlay packs uploaded before per-file extraction existed. Packs that
# already have overlays are skipped.
#
# Usage:
#   python -m scripts.unzip_overlay_assets --asset-id <assetId> [--dry-run]
#   python -m scripts.unzip_overlay_assets --all [--dry-run]
# =============================================================================

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract overlays from overlay pack ZIPs")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--asset-id", help="Process a single asset")
    target.add_argument("--all", action="store_true", help="Process every overlay asset")
    parser.add_argument("--dry-run", action="store_true", help="Count files without uploading")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    from core.services.maintenance_service import unzip_overlay_assets

    summary = unzip_overlay_assets(asset_id=None if args.all else args.asset_id, dry_run=args.dry_run)
    if not summary["assets"]:
        logger.warning("No overlay assets found")
    print(json.dumps(summary, indent=2))
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
