"""Base collector with common dedup and save logic."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError

from db.database import get_session
from db.models import News

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """Abstract base for all collectors."""

    source_type: str  # Must be set by subclasses; matches news_sources.type

    @abstractmethod
    def collect(self, source: dict[str, Any]) -> list[dict[str, Any]]:
        """Fetch items for one configured source. Returns list of item dicts."""
        ...

    def save(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert items whose URL is not stored yet.

        Returns only the items that were newly persisted, each with its
        assigned ``id``. A URL that already exists is left untouched.
        """
        saved: list[dict[str, Any]] = []
        for data in items:
            session = get_session()
            try:
                news = News(
                    title=data.get("title") or "",
                    content=data.get("content"),
                    summary=data.get("summary"),
                    url=data["url"],
                    source=data.get("source"),
                    category=data.get("category"),
                    image_url=data.get("image_url"),
                    author=data.get("author"),
                    published_at=data.get("published_at"),
                    created_at=datetime.utcnow(),
                    translated=False,
                    in_reading=False,
                    pushed=False,
                )
                session.add(news)
                session.commit()
                saved.append({**data, "id": news.id})
            except IntegrityError:
                session.rollback()
                logger.debug("Duplicate skipped: %s", data.get("url"))
            except Exception:
                session.rollback()
                logger.exception("Error saving item %s", data.get("url"))
            finally:
                session.close()

        return saved

    def run(self, source: dict[str, Any]) -> list[dict[str, Any]]:
        """Collect and save. Returns the newly stored items."""
        items = self.collect(source)
        if not items:
            logger.info("[%s] No items collected", source.get("name"))
            return []
        saved = self.save(items)
        logger.info("[%s] Saved %d new items (of %d fetched)", source.get("name"), len(saved), len(items))
        return saved
