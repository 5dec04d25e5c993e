"""Item store queries shared by the pipeline stages and the API.

All reading-window transitions go through here so the state machine
New -> InWindow-Unpushed -> InWindow-Pushed -> Cleared is enforced in
one place.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from db.models import News, Setting

# "Unpushed in window": enriched items waiting for dispatch.
UNPUSHED_IN_READING = (
    News.in_reading.is_(True),
    News.pushed.is_(False),
    News.translated.is_(True),
)


def parse_tags(raw: str | None) -> list[str]:
    """Parse JSON tags string to list."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    if isinstance(parsed, list):
        return [str(t).strip() for t in parsed if t]
    return []


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def news_to_dict(news: News) -> dict[str, Any]:
    """Serialize a News row to a plain dict (safe to use after the session closes)."""
    return {
        "id": news.id,
        "title": news.title or "",
        "content": news.content or "",
        "summary": news.summary or "",
        "url": news.url,
        "source": news.source or "",
        "category": news.category or "",
        "image_url": news.image_url or "",
        "author": news.author or "",
        "published_at": _iso(news.published_at),
        "created_at": _iso(news.created_at),
        "translated": bool(news.translated),
        "trans_title": news.trans_title or "",
        "trans_content": news.trans_content or "",
        "trans_summary": news.trans_summary or "",
        "is_filtered": bool(news.is_filtered),
        "tags": parse_tags(news.tags),
        "in_reading": bool(news.in_reading),
        "reading_at": _iso(news.reading_at),
        "pushed": bool(news.pushed),
        "pushed_at": _iso(news.pushed_at),
    }


def mark_enriched(session: Session, news_id: str, trans_title: str, trans_summary: str) -> bool:
    """Store enrichment results and move the item into the reading window.

    Only untranslated rows are touched, so a concurrent pass cannot reset
    ``reading_at`` on an item that is already in the window.
    """
    result = session.execute(
        update(News)
        .where(News.id == news_id, News.translated.is_(False))
        .values(
            translated=True,
            trans_title=trans_title,
            trans_summary=trans_summary,
            in_reading=True,
            reading_at=datetime.utcnow(),
        )
    )
    session.commit()
    return result.rowcount > 0


def count_unpushed_in_reading(session: Session) -> int:
    return session.query(func.count(News.id)).filter(*UNPUSHED_IN_READING).scalar() or 0


def select_unpushed_in_reading(
    session: Session,
    limit: int,
    categories: list[str] | None = None,
    oldest_first: bool = False,
) -> list[News]:
    """Unpushed window items, newest-windowed first unless ``oldest_first``."""
    query = session.query(News).filter(*UNPUSHED_IN_READING)
    if categories:
        query = query.filter(News.category.in_(categories))
    order = News.reading_at.asc() if oldest_first else News.reading_at.desc()
    return query.order_by(order).limit(limit).all()


def mark_pushed(session: Session, news_ids: list[str]) -> int:
    """Mark a delivered batch pushed in a single statement."""
    if not news_ids:
        return 0
    result = session.execute(
        update(News)
        .where(News.id.in_(news_ids), News.in_reading.is_(True))
        .values(pushed=True, pushed_at=datetime.utcnow())
    )
    session.commit()
    return result.rowcount


def clear_pushed_from_reading(session: Session) -> int:
    """Sweep pushed items out of the window. Unpushed items are never touched."""
    result = session.execute(
        update(News)
        .where(News.in_reading.is_(True), News.pushed.is_(True))
        .values(in_reading=False)
    )
    session.commit()
    return result.rowcount


def add_to_reading(session: Session, news_id: str) -> bool:
    """Re-enter an enriched item into the window with a fresh ``reading_at``.

    Items already in the window keep their ``reading_at``.
    """
    result = session.execute(
        update(News)
        .where(News.id == news_id, News.translated.is_(True), News.in_reading.is_(False))
        .values(in_reading=True, reading_at=datetime.utcnow())
    )
    session.commit()
    return result.rowcount > 0


def remove_from_reading(session: Session, news_id: str) -> bool:
    """Take a single pushed item out of the window."""
    result = session.execute(
        update(News)
        .where(News.id == news_id, News.pushed.is_(True))
        .values(in_reading=False)
    )
    session.commit()
    return result.rowcount > 0


def get_setting(session: Session, key: str, default: str = "") -> str:
    row = session.get(Setting, key)
    if row is None or row.value is None:
        return default
    return row.value


def set_setting(session: Session, key: str, value: str) -> None:
    session.merge(Setting(key=key, value=value))
