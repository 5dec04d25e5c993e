"""Tests for the feed collector and the collect-all runner (mocked HTTP)."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from collectors.feed import FeedCollector, _strip_html
from collectors.runner import collect_all, init_default_sources
from config import DEFAULT_SOURCES
from db.database import get_session
from db.models import News, NewsSource


def _rss(*entries: tuple[str, str, int]) -> bytes:
    """RSS 2.0 document; each entry is (title, link, hours_ago)."""
    now = datetime.now(timezone.utc)
    items = "".join(
        f"""<item>
            <title>{title}</title>
            <link>{link}</link>
            <description>&lt;p&gt;About &lt;b&gt;{title}&lt;/b&gt;&lt;/p&gt;</description>
            <pubDate>{format_datetime(now - timedelta(hours=hours_ago))}</pubDate>
        </item>"""
        for title, link, hours_ago in entries
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Test</title><link>https://example.com</link>
<description>Test feed</description>{items}</channel></rss>""".encode()


def _response(body: bytes) -> MagicMock:
    resp = MagicMock()
    resp.content = body
    resp.raise_for_status = MagicMock()
    return resp


def _add_source(name: str, url: str | None, category: str = "tech", type_: str = "rss", enabled: bool = True) -> None:
    session = get_session()
    try:
        session.add(NewsSource(name=name, url=url, category=category, type=type_, enabled=enabled))
        session.commit()
    finally:
        session.close()


def _stored_urls() -> set[str]:
    session = get_session()
    try:
        return {n.url for n in session.query(News).all()}
    finally:
        session.close()


SOURCE = {"name": "Test Feed", "url": "https://feeds.example.com/rss", "category": "ai"}


def test_strip_html():
    assert _strip_html("<p>Hello <b>world</b></p>") == "Hello world"
    assert _strip_html("&amp; &lt; &gt;") == "& < >"


def test_collect_maps_entry_fields():
    body = _rss(("OpenAI ships a model", "https://example.com/a", 1))
    with patch("collectors.feed.requests.get", return_value=_response(body)):
        items = FeedCollector().collect(SOURCE)

    assert len(items) == 1
    item = items[0]
    assert item["title"] == "OpenAI ships a model"
    assert item["url"] == "https://example.com/a"
    assert item["source"] == "Test Feed"
    assert item["category"] == "ai"
    assert item["content"] == "About OpenAI ships a model"  # HTML stripped
    assert isinstance(item["published_at"], datetime)
    assert item["published_at"].tzinfo is None


def test_collect_freshness_window():
    body = _rss(
        ("Fresh", "https://example.com/fresh", 23),
        ("Stale", "https://example.com/stale", 25),
    )
    with patch("collectors.feed.requests.get", return_value=_response(body)):
        items = FeedCollector().collect(SOURCE)

    assert [i["url"] for i in items] == ["https://example.com/fresh"]


def test_collect_fetch_error_returns_empty():
    with patch("collectors.feed.requests.get", side_effect=requests.ConnectionError("down")):
        assert FeedCollector().collect(SOURCE) == []


def test_save_is_idempotent_by_url():
    body = _rss(("One", "https://example.com/1", 1), ("Two", "https://example.com/2", 2))
    collector = FeedCollector()
    with patch("collectors.feed.requests.get", return_value=_response(body)):
        first = collector.run(SOURCE)
        second = collector.run(SOURCE)

    assert len(first) == 2
    assert all(item["id"] for item in first)
    assert second == []
    assert _stored_urls() == {"https://example.com/1", "https://example.com/2"}


def test_save_stores_new_items_untranslated_outside_window():
    body = _rss(("One", "https://example.com/1", 1))
    with patch("collectors.feed.requests.get", return_value=_response(body)):
        saved = FeedCollector().run(SOURCE)

    session = get_session()
    try:
        news = session.get(News, saved[0]["id"])
        assert news.translated is False
        assert news.in_reading is False
        assert news.pushed is False
    finally:
        session.close()


def test_collect_all_isolates_failing_source():
    _add_source("Good", "https://good.example.com/rss")
    _add_source("Broken", "https://broken.example.com/rss")
    _add_source("Disabled", "https://disabled.example.com/rss", enabled=False)
    _add_source("No URL", None)
    _add_source("Scraper", "https://scrape.example.com", type_="html")

    def fake_get(url, **kwargs):
        if "broken" in url:
            raise requests.Timeout("timed out")
        if "good" in url:
            return _response(_rss(("Good news", "https://example.com/good", 1)))
        pytest.fail(f"unexpected fetch: {url}")

    with patch("collectors.feed.requests.get", side_effect=fake_get):
        new_items = collect_all()

    assert [i["url"] for i in new_items] == ["https://example.com/good"]
    assert new_items[0]["source"] == "Good"


def test_init_default_sources_seeds_once():
    assert init_default_sources() == len(DEFAULT_SOURCES)
    assert init_default_sources() == 0

    session = get_session()
    try:
        assert session.query(NewsSource).count() == len(DEFAULT_SOURCES)
    finally:
        session.close()
