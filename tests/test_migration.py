"""Tests for database migration idempotency."""

import pytest
from sqlalchemy import create_engine, text

from db.migrations import run_migrations, _column_exists
from db.models import Base


@pytest.fixture
def engine(tmp_path):
    db_path = tmp_path / "test_migration.db"
    eng = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(eng)
    return eng


def test_migration_adds_columns(engine):
    """Reading-window columns should be added to a pre-window news table."""
    # SQLite doesn't support DROP COLUMN easily, so create a fresh table without them
    with engine.connect() as conn:
        conn.execute(text("DROP TABLE IF EXISTS news"))
        conn.execute(text("""
            CREATE TABLE news (
                id VARCHAR(36) PRIMARY KEY,
                title TEXT NOT NULL,
                content TEXT,
                url VARCHAR UNIQUE NOT NULL,
                source VARCHAR,
                category VARCHAR,
                translated BOOLEAN NOT NULL DEFAULT 0,
                is_filtered BOOLEAN NOT NULL DEFAULT 0,
                created_at DATETIME
            )
        """))
        conn.execute(text(
            "INSERT INTO news (id, title, url, translated) VALUES ('n1', 'Old', 'https://example.com/old', 1)"
        ))
        conn.commit()

    for column in ("in_reading", "reading_at", "pushed", "pushed_at", "tags"):
        assert not _column_exists(engine, "news", column)

    run_migrations(engine)

    for column in ("in_reading", "reading_at", "pushed", "pushed_at", "tags"):
        assert _column_exists(engine, "news", column)

    # Existing rows start outside the window and unpushed
    with engine.connect() as conn:
        row = conn.execute(text("SELECT in_reading, pushed FROM news WHERE id = 'n1'")).one()
    assert tuple(row) == (0, 0)


def test_migration_idempotent(engine):
    """Running migrations twice should not fail."""
    run_migrations(engine)
    run_migrations(engine)  # Should not raise

    assert _column_exists(engine, "news", "in_reading")
    assert _column_exists(engine, "push_tasks", "last_run_at")


def test_column_exists_check(engine):
    assert _column_exists(engine, "news", "url")
    assert _column_exists(engine, "news", "title")
    assert not _column_exists(engine, "news", "nonexistent_column")
