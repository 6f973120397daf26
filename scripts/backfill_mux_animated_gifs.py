#!/usr/bin/env python3
# =============================================================================
# scripts/backfill_mux_animated_gifs.py - Fill Missing Lesson GIF Previews
# =============================================================================
# Course cards show an animated GIF on hover. Lessons linked before the
# URL was stored get one built from their playback ID (no Mux API calls).
#
# Usage:
#   python -m scripts.backfill_mux_animated_gifs [--width 640] [--dry-run]
# =============================================================================

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Backfill lesson muxAnimatedGifUrl")
    parser.add_argument("--width", type=int, default=320, help="GIF width in pixels (max 640)")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    from core.services.maintenance_service import backfill_mux_animated_gifs

    summary = backfill_mux_animated_gifs(width=args.width, dry_run=args.dry_run)
    logger.info(f"Scanned {summary['scanned']}, updated {summary['updated']}, skipped {summary['skipped']}")
    print(json.dumps(summary, indent=2))
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
