"""RSS / Atom collector using requests + feedparser."""

import html
import logging
import re
from datetime import datetime, timedelta
from time import struct_time
from typing import Any

import feedparser
import requests

from collectors.base import BaseCollector
from config import FEED_FETCH_TIMEOUT, FEED_MAX_AGE_HOURS, FEED_USER_AGENT

logger = logging.getLogger(__name__)


def _strip_html(text: str) -> str:
    """Remove HTML tags and unescape entities."""
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(text).strip()


class FeedCollector(BaseCollector):
    """Collect recent entries from an RSS or Atom feed."""

    source_type = "rss"

    @staticmethod
    def _parse_published(entry: Any) -> datetime | None:
        """Published date as naive UTC (feedparser normalizes *_parsed to UTC)."""
        for field in ("published_parsed", "updated_parsed"):
            val = getattr(entry, field, None)
            if isinstance(val, struct_time):
                try:
                    return datetime(*val[:6])
                except (ValueError, OverflowError):
                    pass
        return None

    @staticmethod
    def _extract_content(entry: Any) -> str:
        """Entry description, falling back to the full content block."""
        description = getattr(entry, "summary", None)
        if description:
            return _strip_html(description)
        if hasattr(entry, "content") and entry.content:
            for c in entry.content:
                if c.get("value"):
                    return _strip_html(c["value"])
        return ""

    @staticmethod
    def _extract_image(entry: Any) -> str:
        for field in ("media_content", "media_thumbnail"):
            media = getattr(entry, field, None)
            if media and media[0].get("url"):
                return media[0]["url"]
        for enclosure in getattr(entry, "enclosures", None) or []:
            if str(enclosure.get("type", "")).startswith("image/") and enclosure.get("href"):
                return enclosure["href"]
        image = getattr(entry, "image", None)
        if image and getattr(image, "href", None):
            return image.href
        return ""

    def _fetch_feed(self, url: str) -> Any:
        resp = requests.get(url, timeout=FEED_FETCH_TIMEOUT, headers={"User-Agent": FEED_USER_AGENT})
        resp.raise_for_status()
        return feedparser.parse(resp.content)

    def collect(self, source: dict[str, Any]) -> list[dict[str, Any]]:
        """Fetch one feed and return entries published within the freshness window."""
        name = source.get("name") or ""
        logger.info("Fetching feed: %s", name)
        try:
            feed = self._fetch_feed(source["url"])
        except requests.RequestException as e:
            logger.error("Failed to fetch feed %s: %s", name, e)
            return []

        if feed.bozo and not feed.entries:
            logger.warning("Feed %s returned bozo with no entries: %s", name, feed.bozo_exception)
            return []

        now = datetime.utcnow()
        cutoff = now - timedelta(hours=FEED_MAX_AGE_HOURS)
        items: list[dict[str, Any]] = []
        stale = 0
        for entry in feed.entries:
            entry_url = getattr(entry, "link", "") or ""
            if not entry_url:
                continue

            published_at = self._parse_published(entry) or now
            if published_at < cutoff:
                stale += 1
                continue

            items.append({
                "title": _strip_html(getattr(entry, "title", "") or ""),
                "content": self._extract_content(entry),
                "url": entry_url,
                "source": name,
                "category": source.get("category") or "",
                "image_url": self._extract_image(entry),
                "author": getattr(entry, "author", "") or "",
                "published_at": published_at,
            })

        logger.info("Got %d fresh entries from %s (%d older than %dh)", len(items), name, stale, FEED_MAX_AGE_HOURS)
        return items
