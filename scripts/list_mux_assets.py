#!/usr/bin/env python3
# =============================================================================
# scripts/list_mux_assets.py - Print the Mux Asset Inventory
# =============================================================================
# Handy when linking an existing upload to a lesson or legacy video.
#
# Usage:
#   python -m scripts.list_mux_assets [--limit 100] [--json]
# =============================================================================

import argparse
import json
import logging
import sys

import pandas as pd
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="List Mux video assets")
    parser.add_argument("--limit", type=int, default=None, help="Stop after this many assets")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    from app.exceptions import MuxApiError
    from core.services.maintenance_service import list_mux_assets

    try:
        rows = list_mux_assets(limit=args.limit)
    except MuxApiError as e:
        logger.error(f"Could not list assets: {e.message} (check MUX_TOKEN_ID / MUX_TOKEN_SECRET)")
        return 1

    if args.json:
        print(json.dumps(rows, indent=2))
    elif not rows:
        print("No assets found.")
    else:
        print(pd.DataFrame(rows).to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
