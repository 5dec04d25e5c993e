"""Shared fixtures: a temporary database per test and a scripted LLM."""

import json
from collections.abc import Callable
from datetime import datetime, timedelta

import pytest

from db.database import get_session, init_db
from db.models import News, PushChannel
from enrichment.llm import LLMSettings


@pytest.fixture(autouse=True)
def setup_db(tmp_path, monkeypatch):
    """Use a temporary database for each test."""
    db_path = tmp_path / "test.db"
    # Patch in both config and db.database (which imports by value)
    monkeypatch.setattr("config.DB_PATH", db_path)
    monkeypatch.setattr("config.DATA_DIR", tmp_path)
    monkeypatch.setattr("db.database.DB_PATH", db_path)
    monkeypatch.setattr("db.database.DATA_DIR", tmp_path)

    # Reset engine/session so they use the new path
    import db.database as db_mod
    db_mod._engine = None
    db_mod._SessionFactory = None

    init_db()
    yield
    if db_mod._engine is not None:
        db_mod._engine.dispose()
    db_mod._engine = None
    db_mod._SessionFactory = None


class FakeLLM:
    """Stands in for ``LLMClient``. ``handler(prompt)`` returns the reply or raises."""

    def __init__(self, target_lang: str = "zh-CN") -> None:
        self.settings = LLMSettings(api_key="test-key", base_url="", model="test-model", target_lang=target_lang)
        self.configured = True
        self.prompts: list[str] = []
        self.handler: Callable[[str], str] = self.echo

    @staticmethod
    def is_batch(prompt: str) -> bool:
        return "Respond with a JSON array" in prompt

    @staticmethod
    def echo(prompt: str) -> str:
        if FakeLLM.is_batch(prompt):
            raise ValueError("batch disabled")
        if prompt.startswith("Translate"):
            return "译文"
        return "摘要"

    @property
    def batch_calls(self) -> int:
        return sum(1 for p in self.prompts if self.is_batch(p))

    def chat(self, prompt: str, temperature: float = 0.3) -> str:
        self.prompts.append(prompt)
        return self.handler(prompt)


def batch_reply(count: int, skip: tuple[int, ...] = ()) -> str:
    """A well-formed batch response covering items 1..count except ``skip``."""
    return json.dumps([
        {"index": i, "trans_title": f"标题{i}", "trans_summary": f"摘要{i}"}
        for i in range(1, count + 1)
        if i not in skip
    ], ensure_ascii=False)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def make_news():
    """Insert a News row and return its id."""
    counter = {"n": 0}

    def _make(
        title: str = "",
        category: str = "tech",
        translated: bool = True,
        in_reading: bool = True,
        pushed: bool = False,
        minutes_ago: int = 0,
        **extra,
    ) -> str:
        counter["n"] += 1
        n = counter["n"]
        now = datetime.utcnow()
        session = get_session()
        try:
            news = News(
                title=title or f"Story {n}",
                content=f"Body of story {n}",
                url=extra.pop("url", f"https://example.com/story/{n}"),
                source="Test Feed",
                category=category,
                translated=translated,
                trans_title=f"故事 {n}" if translated else None,
                trans_summary=f"摘要 {n}" if translated else None,
                in_reading=in_reading,
                reading_at=now - timedelta(minutes=minutes_ago) if in_reading else None,
                pushed=pushed,
                pushed_at=now if pushed else None,
                created_at=now - timedelta(minutes=minutes_ago),
                **extra,
            )
            session.add(news)
            session.commit()
            return news.id
        finally:
            session.close()

    return _make


@pytest.fixture
def webhook_channel() -> str:
    """An ntfy-style webhook channel; returns its id."""
    session = get_session()
    try:
        channel = PushChannel(
            name="ntfy",
            type="webhook",
            config=json.dumps({"server_url": "https://ntfy.example.com", "topic": "news", "token": "tk_test"}),
        )
        session.add(channel)
        session.commit()
        return channel.id
    finally:
        session.close()


def load_news(news_id: str) -> News:
    session = get_session()
    try:
        news = session.get(News, news_id)
        session.expunge(news)
        return news
    finally:
        session.close()
