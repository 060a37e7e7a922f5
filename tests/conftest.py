from __future__ import annotations

from pathlib import Path

import pytest

from credstore.core.settings import get_settings
from credstore.db.session import build_engine, reset_engines
from credstore.queries.catalog import QueryCatalog, reset_query_catalog
from credstore.schema.runner import MigrationRunner
from tests.utils.schema import QUERIES_DIR, SQLITE_MIGRATIONS, write_migrations


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    return write_migrations(tmp_path / "migrations", SQLITE_MIGRATIONS)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'credstore.db'}"


@pytest.fixture
def engine(database_url: str):
    engine = build_engine(database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def migrated_engine(engine, migrations_dir: Path):
    MigrationRunner(engine, migrations_dir).run()
    return engine


@pytest.fixture
def catalog() -> QueryCatalog:
    return QueryCatalog.load(QUERIES_DIR)


@pytest.fixture
def configured(monkeypatch, database_url: str, migrations_dir: Path):
    """Point the settings-driven services at a throwaway SQLite database."""
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("MIGRATIONS_DIR", str(migrations_dir))
    monkeypatch.setenv("QUERIES_DIR", str(QUERIES_DIR))
    monkeypatch.setenv("DB_RETRY_MAX_ATTEMPTS", "1")
    monkeypatch.setenv("STARTUP_DB_ATTEMPTS", "1")
    get_settings.cache_clear()
    reset_engines()
    reset_query_catalog()
    yield get_settings()
    get_settings.cache_clear()
    reset_engines()
    reset_query_catalog()
