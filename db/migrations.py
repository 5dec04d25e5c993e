"""Idempotent database migrations for news-intel.

Databases created before the reading window existed lack its columns.
SQLite supports ADD COLUMN for nullable / defaulted columns, so each
migration checks whether the column exists first.
"""

import logging
from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


def _column_exists(engine: Engine, table: str, column: str) -> bool:
    """Check if a column exists in the given table."""
    with engine.connect() as conn:
        result = conn.execute(text(f"PRAGMA table_info({table})"))
        columns = [row[1] for row in result]
        return column in columns


def run_migrations(engine: Engine) -> None:
    """Run all pending migrations idempotently."""
    migrations = [
        ("news", "tags", "TEXT"),
        ("news", "in_reading", "BOOLEAN NOT NULL DEFAULT 0"),
        ("news", "reading_at", "DATETIME"),
        ("news", "pushed", "BOOLEAN NOT NULL DEFAULT 0"),
        ("news", "pushed_at", "DATETIME"),
        ("push_tasks", "last_run_at", "DATETIME"),
    ]

    with engine.connect() as conn:
        for table, column, col_type in migrations:
            if not _column_exists(engine, table, column):
                logger.info("Adding column %s.%s (%s)", table, column, col_type)
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
                conn.commit()
            else:
                logger.debug("Column %s.%s already exists, skipping", table, column)
