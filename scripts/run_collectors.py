#!/usr/bin/env python3
"""CLI to run the news-intel feed collectors once."""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collectors.runner import collect_all, init_default_sources
from db.database import init_db
from pipeline import Pipeline


def main() -> None:
    parser = argparse.ArgumentParser(description="Run news-intel collectors")
    parser.add_argument(
        "--process",
        action="store_true",
        help="Also translate new items and run the auto-push check",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    init_db()
    seeded = init_default_sources()
    if seeded:
        logging.info("Seeded %d default sources", seeded)

    if args.process:
        pipeline = Pipeline()
        pipeline.engine.reload_config()
        stats = pipeline.collect_and_process()
        logging.info(
            "Done. collected=%d enriched=%d pushed=%d",
            stats["collected"], stats["enriched"], stats["pushed"],
        )
        return

    saved = collect_all()
    logging.info("Done. Total new articles saved: %d", len(saved))


if __name__ == "__main__":
    main()
