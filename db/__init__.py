from db.database import get_engine, get_session, init_db
from db.models import AIConfig, EmailTemplate, News, NewsSource, PushChannel, PushTask, Setting

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "AIConfig",
    "EmailTemplate",
    "News",
    "NewsSource",
    "PushChannel",
    "PushTask",
    "Setting",
]
