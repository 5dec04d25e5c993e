#!/usr/bin/env python3
"""Translate and summarize news that hasn't been enriched yet."""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import PROCESS_LIMIT
from db.database import init_db
from pipeline import Pipeline

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Enrich untranslated news and move it to the reading window")
    parser.add_argument("--limit", type=int, default=PROCESS_LIMIT, help="Process N most recent untranslated items")
    parser.add_argument("--no-push", action="store_true", help="Skip the auto-push check afterwards")
    args = parser.parse_args()

    if args.limit <= 0:
        parser.error("--limit must be positive")

    init_db()
    pipeline = Pipeline()
    settings = pipeline.engine.reload_config()
    if not pipeline.engine.llm.configured:
        logger.error("No API key configured for provider %s, nothing to do", settings.provider)
        sys.exit(1)

    if args.no_push:
        enriched = pipeline.engine.process_unprocessed_news(args.limit)
    else:
        enriched = pipeline.process_unprocessed(args.limit)
    logger.info("Done. Total enriched: %d", enriched)


if __name__ == "__main__":
    main()
