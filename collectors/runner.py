"""Collect from every enabled source in the news_sources table."""

import logging
from typing import Any

from collectors.base import BaseCollector
from collectors.feed import FeedCollector
from config import DEFAULT_SOURCES
from db.database import get_session
from db.models import NewsSource

logger = logging.getLogger(__name__)

COLLECTORS: dict[str, type[BaseCollector]] = {
    "rss": FeedCollector,
}


def load_enabled_sources() -> list[dict[str, Any]]:
    session = get_session()
    try:
        rows = session.query(NewsSource).filter(NewsSource.enabled.is_(True)).all()
        return [
            {"id": s.id, "name": s.name, "type": s.type, "url": s.url, "category": s.category}
            for s in rows
        ]
    finally:
        session.close()


def collect_all() -> list[dict[str, Any]]:
    """Collect every enabled source; return the items that were newly stored.

    A failing source is logged and skipped, the remaining sources still run.
    """
    new_items: list[dict[str, Any]] = []
    for source in load_enabled_sources():
        collector_cls = COLLECTORS.get(source["type"])
        if collector_cls is None:
            logger.warning("Unsupported source type %r for %s, skipping", source["type"], source["name"])
            continue
        if not source.get("url"):
            logger.warning("Source %s has no URL, skipping", source["name"])
            continue
        try:
            saved = collector_cls().run(source)
        except Exception:
            logger.exception("Collector failed for source %s", source["name"])
            continue
        new_items.extend(saved)

    logger.info("Collection done: %d new items", len(new_items))
    return new_items


def init_default_sources() -> int:
    """Seed the default feeds when no source is configured yet."""
    session = get_session()
    try:
        if session.query(NewsSource).count() > 0:
            return 0
        for data in DEFAULT_SOURCES:
            session.add(NewsSource(type="rss", enabled=True, **data))
        session.commit()
        logger.info("Default news sources initialized (%d)", len(DEFAULT_SOURCES))
        return len(DEFAULT_SOURCES)
    finally:
        session.close()
