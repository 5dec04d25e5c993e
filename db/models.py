"""SQLAlchemy models for news-intel."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class News(Base):
    """A collected news item and its enrichment / reading-window / push state."""

    __tablename__ = "news"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str | None] = mapped_column(Text)
    summary: Mapped[str | None] = mapped_column(Text)
    url: Mapped[str] = mapped_column(String, unique=True, nullable=False)  # dedup key
    source: Mapped[str | None] = mapped_column(String)  # source name, e.g. "BBC News"
    category: Mapped[str | None] = mapped_column(String)  # tech, ai, international, ...
    image_url: Mapped[str | None] = mapped_column(String)
    author: Mapped[str | None] = mapped_column(String)
    published_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    translated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    trans_title: Mapped[str | None] = mapped_column(Text)
    trans_content: Mapped[str | None] = mapped_column(Text)
    trans_summary: Mapped[str | None] = mapped_column(Text)
    is_filtered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tags: Mapped[str | None] = mapped_column(String)  # JSON array

    in_reading: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reading_at: Mapped[datetime | None] = mapped_column(DateTime)
    pushed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pushed_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_news_source", "source"),
        Index("idx_news_category", "category"),
        Index("idx_news_created", "created_at"),
        Index("idx_news_published", "published_at"),
        Index("idx_news_reading", "in_reading"),
        Index("idx_news_translated", "translated"),
    )

    def __repr__(self) -> str:
        return f"<News(id={self.id!r}, source={self.source!r}, title={self.title!r})>"


class NewsSource(Base):
    """Feed the collector polls."""

    __tablename__ = "news_sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False, default="rss")
    url: Mapped[str | None] = mapped_column(String)
    category: Mapped[str | None] = mapped_column(String)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    interval_mins: Mapped[int] = mapped_column(Integer, default=60)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PushChannel(Base):
    """Delivery target. ``config`` holds the type-specific JSON settings."""

    __tablename__ = "push_channels"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)  # email, webhook (ntfy)
    config: Mapped[str | None] = mapped_column(Text)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmailTemplate(Base):
    __tablename__ = "email_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    subject: Mapped[str | None] = mapped_column(String)
    content: Mapped[str | None] = mapped_column(Text)  # Jinja2 HTML
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AIConfig(Base):
    """Single-row LLM provider configuration; overrides the env defaults."""

    __tablename__ = "ai_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    provider: Mapped[str] = mapped_column(String, nullable=False, default="openai")
    api_key: Mapped[str | None] = mapped_column(String)
    base_url: Mapped[str | None] = mapped_column(String)
    model: Mapped[str | None] = mapped_column(String)
    enable_trans: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    enable_summary: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    enable_filter: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    target_lang: Mapped[str] = mapped_column(String, default="zh-CN")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PushTask(Base):
    """Scheduled dispatch of reading-window items to one channel."""

    __tablename__ = "push_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    cron_expr: Mapped[str | None] = mapped_column(String)  # 5-field crontab
    channel_id: Mapped[str | None] = mapped_column(String(36))
    template_id: Mapped[str | None] = mapped_column(String(36))
    categories: Mapped[str | None] = mapped_column(String)  # comma separated
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def category_list(self) -> list[str]:
        return [c.strip() for c in (self.categories or "").split(",") if c.strip()]


class Setting(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str | None] = mapped_column(String)
