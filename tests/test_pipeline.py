"""End-to-end pass: collect -> enrich -> auto-push, with HTTP and the LLM mocked."""

import threading
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import requests

from db.database import get_session
from db.models import News, NewsSource
from dispatch.dispatcher import Dispatcher
from enrichment.engine import EnrichmentEngine
from pipeline import Pipeline


def _feed(*entries: tuple[str, int]) -> MagicMock:
    now = datetime.now(timezone.utc)
    items = "".join(
        f"<item><title>{url.rsplit('/', 1)[-1]}</title><link>{url}</link>"
        f"<description>Body of {url}</description>"
        f"<pubDate>{format_datetime(now - timedelta(hours=hours))}</pubDate></item>"
        for url, hours in entries
    )
    resp = MagicMock()
    resp.content = (
        '<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>'
        f"<link>https://example.com</link><description>d</description>{items}</channel></rss>"
    ).encode()
    return resp


FEEDS = {
    "https://a.example.com/rss": _feed(("https://example.com/a1", 1), ("https://example.com/a2", 2)),
    "https://b.example.com/rss": _feed(("https://example.com/seen", 1)),
    "https://c.example.com/rss": _feed(("https://example.com/c1", 3), ("https://example.com/c-old", 30)),
}


def _seed_sources_and_existing(make_news) -> None:
    session = get_session()
    try:
        for name, url in (("A", "https://a.example.com/rss"), ("B", "https://b.example.com/rss"),
                          ("C", "https://c.example.com/rss")):
            session.add(NewsSource(name=name, url=url, category="tech"))
        session.commit()
    finally:
        session.close()
    # Already stored from an earlier pass and swept out of the window.
    make_news(url="https://example.com/seen", in_reading=False)


def _all_news() -> dict[str, News]:
    session = get_session()
    try:
        rows = session.query(News).all()
        for row in rows:
            session.expunge(row)
        return {n.url: n for n in rows}
    finally:
        session.close()


def test_collect_and_process_end_to_end(fake_llm, make_news, webhook_channel):
    _seed_sources_and_existing(make_news)
    dispatcher = Dispatcher()
    dispatcher.save_auto_push_config(True, 2, webhook_channel, "")
    # Default handler: batch call fails, per-item calls succeed.
    pipeline = Pipeline(engine=EnrichmentEngine(llm=fake_llm), dispatcher=dispatcher)

    post = MagicMock()
    with patch("collectors.feed.requests.get", side_effect=lambda url, **kw: FEEDS[url]), \
            patch("dispatch.channels.requests.post", post):
        stats = pipeline.collect_and_process()

    assert stats == {"collected": 3, "enriched": 3, "pushed": 2}
    assert fake_llm.batch_calls == 1

    news = _all_news()
    assert set(news) == {
        "https://example.com/a1", "https://example.com/a2",
        "https://example.com/c1", "https://example.com/seen",
    }
    new = [news[u] for u in ("https://example.com/a1", "https://example.com/a2", "https://example.com/c1")]
    assert all(n.translated and n.in_reading for n in new)
    assert sum(n.pushed for n in new) == 2
    assert news["https://example.com/seen"].in_reading is False
    assert dispatcher.pending_count() == 1
    post.assert_called_once()


def test_three_sources_with_duplicate_in_one_pass(fake_llm, webhook_channel):
    feeds = {
        "https://a.example.com/rss": _feed(("https://example.com/a1", 1)),
        "https://b.example.com/rss": _feed(("https://example.com/b1", 2), ("https://example.com/a1", 1)),
        "https://c.example.com/rss": _feed(("https://example.com/c1", 3)),
    }
    session = get_session()
    try:
        for name, url in (("A", "https://a.example.com/rss"), ("B", "https://b.example.com/rss"),
                          ("C", "https://c.example.com/rss")):
            session.add(NewsSource(name=name, url=url, category="tech"))
        session.commit()
    finally:
        session.close()
    dispatcher = Dispatcher()
    dispatcher.save_auto_push_config(True, 2, webhook_channel, "")
    pipeline = Pipeline(engine=EnrichmentEngine(llm=fake_llm), dispatcher=dispatcher)

    with patch("collectors.feed.requests.get", side_effect=lambda url, **kw: feeds[url]), \
            patch("dispatch.channels.requests.post", MagicMock()):
        stats = pipeline.collect_and_process()

    assert stats == {"collected": 3, "enriched": 3, "pushed": 2}
    news = _all_news()
    assert set(news) == {"https://example.com/a1", "https://example.com/b1", "https://example.com/c1"}
    assert all(n.translated and n.in_reading for n in news.values())
    assert sum(n.pushed for n in news.values()) == 2


def test_nothing_new_still_checks_auto_push(fake_llm, make_news, webhook_channel):
    make_news()
    make_news()
    dispatcher = Dispatcher()
    dispatcher.save_auto_push_config(True, 2, webhook_channel, "")
    pipeline = Pipeline(engine=EnrichmentEngine(llm=fake_llm), dispatcher=dispatcher, collect=lambda: [])

    with patch("dispatch.channels.requests.post", MagicMock()):
        stats = pipeline.collect_and_process()

    assert stats == {"collected": 0, "enriched": 0, "pushed": 2}
    assert fake_llm.prompts == []


def test_stage_errors_are_contained(fake_llm, make_news, webhook_channel):
    def broken_collect():
        raise RuntimeError("collector exploded")

    dispatcher = Dispatcher()
    dispatcher.save_auto_push_config(True, 1, webhook_channel, "")
    make_news()
    pipeline = Pipeline(engine=EnrichmentEngine(llm=fake_llm), dispatcher=dispatcher, collect=broken_collect)

    with patch("dispatch.channels.requests.post", side_effect=requests.ConnectionError("down")):
        stats = pipeline.collect_and_process()

    assert stats == {"collected": 0, "enriched": 0, "pushed": 0}
    assert dispatcher.pending_count() == 1


def test_entry_points_share_one_lock(fake_llm):
    pipeline = Pipeline(engine=EnrichmentEngine(llm=fake_llm), collect=lambda: [])
    pipeline.run_lock.acquire()
    try:
        worker = threading.Thread(target=pipeline.auto_push_check)
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
    finally:
        pipeline.run_lock.release()
    worker.join(timeout=5)
    assert not worker.is_alive()
