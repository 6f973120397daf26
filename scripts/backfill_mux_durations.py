#!/usr/bin/env python3
# =============================================================================
# scripts/backfill_mux_durations.py - Fill Missing Lesson Durations
# =============================================================================
# Lessons linked to a Mux asset before durations were recorded show 0:00 in
# the course player. This reads each asset's duration from Mux.
#
# Usage:
#   python -m scripts.backfill_mux_durations [--dry-run]
# =============================================================================

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Backfill lesson durationSec from Mux assets")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    from core.services.maintenance_service import backfill_mux_durations

    summary = backfill_mux_durations(dry_run=args.dry_run)
    logger.info(
        f"Scanned {summary['scanned']}, updated {summary['updated']}, "
        f"skipped {summary['skipped']}, errors {len(summary['errors'])}"
    )
    print(json.dumps(summary, indent=2))
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
