#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker consuming the default and media queues.
#
# Usage:
#   python -m scripts.start_worker
#   python -m scripts.start_worker --queues media --concurrency 1
#
# Prerequisites:
#   - Redis running at REDIS_URL
#   - ffmpeg/ffprobe on PATH for asset pack processing
#   - Environment variables set (.env file)
# =============================================================================

import argparse
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Celery worker")
    parser.add_argument("--queues", default="default,media", help="Comma-separated queues to consume")
    parser.add_argument("--concurrency", type=int, default=2, help="Worker processes")
    parser.add_argument("--loglevel", default="info")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)

    from workers.celery_app import celery_app

    logger.info(f"Starting worker on queues {args.queues} (concurrency {args.concurrency})")
    celery_app.worker_main([
        "worker",
        f"--loglevel={args.loglevel}",
        f"--concurrency={args.concurrency}",
        "-Q", args.queues,
    ])


if __name__ == "__main__":
    main()
