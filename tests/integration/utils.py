from __future__ import annotations

from credstore.db.session import build_engine
from credstore.schema.runner import MigrationRunner
from tests.utils.schema import MIGRATIONS_DIR


def migrate_database(database_url: str) -> list[str]:
    engine = build_engine(database_url)
    try:
        return [migration.name for migration in MigrationRunner(engine, MIGRATIONS_DIR).run()]
    finally:
        engine.dispose()
