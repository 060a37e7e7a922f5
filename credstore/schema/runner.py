"""Schema migration runner.

Migrations are plain ``<version>_<description>.sql`` files. Each pending file
is applied in its own transaction together with its row in
``schema_migrations``, so a failed run leaves every earlier migration recorded
and the failing one absent; the next run resumes from there.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    inspect,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from credstore.core.metrics import MIGRATION_DURATION, MIGRATION_FAILURES, MIGRATIONS_APPLIED
from credstore.schema.errors import (
    MigrationChecksumError,
    MigrationError,
    MigrationFailedError,
    MigrationMissingError,
    MissingDependencyError,
)
from credstore.schema.migrations import (
    Migration,
    created_tables,
    discover_migrations,
    referenced_tables,
)


logger = logging.getLogger(__name__)

# Arbitrary but fixed, so every runner against one database contends for the same lock.
ADVISORY_LOCK_KEY = 7_361_280_413

metadata = MetaData()

schema_migrations = Table(
    "schema_migrations",
    metadata,
    Column("version", BigInteger, primary_key=True, autoincrement=False),
    Column("description", String(255), nullable=False),
    Column("checksum", String(96), nullable=False),
    Column("applied_at", DateTime(timezone=True), nullable=False),
    Column("execution_ms", BigInteger, nullable=False),
)


@dataclass(frozen=True)
class AppliedMigration:
    version: int
    description: str
    checksum: str
    applied_at: datetime
    execution_ms: int


@dataclass(frozen=True)
class MigrationStatus:
    applied: list[AppliedMigration]
    pending: list[Migration]

    @property
    def current_version(self) -> int | None:
        if not self.applied:
            return None
        return max(record.version for record in self.applied)

    @property
    def is_current(self) -> bool:
        return not self.pending


class MigrationRunner:
    def __init__(
        self,
        engine: Engine,
        directory: Path,
        *,
        validate_checksums: bool = True,
        ignore_missing: bool = False,
    ) -> None:
        self._engine = engine
        self._directory = Path(directory)
        self._validate_checksums = validate_checksums
        self._ignore_missing = ignore_missing

    @property
    def directory(self) -> Path:
        return self._directory

    def migrations(self) -> list[Migration]:
        return discover_migrations(self._directory)

    def ensure_tracking_table(self) -> None:
        with self._engine.connect() as connection:
            with _migration_lock(connection):
                _create_tracking_table(connection)

    def applied(self) -> dict[int, AppliedMigration]:
        """Recorded migrations. Read-only: a database never migrated reports none."""
        with self._engine.connect() as connection:
            with connection.begin():
                if not inspect(connection).has_table(schema_migrations.name):
                    return {}
                return _load_applied(connection)

    def pending(self) -> list[Migration]:
        applied = self.applied()
        return [m for m in self.migrations() if m.version not in applied]

    def status(self) -> MigrationStatus:
        applied = self.applied()
        pending = [m for m in self.migrations() if m.version not in applied]
        return MigrationStatus(
            applied=sorted(applied.values(), key=lambda record: record.version),
            pending=pending,
        )

    def run(self, target_version: int | None = None) -> list[Migration]:
        """Apply pending migrations in version order, up to ``target_version``."""
        migrations = self.migrations()
        with self._engine.connect() as connection:
            with _migration_lock(connection):
                _create_tracking_table(connection)
                with connection.begin():
                    applied = _load_applied(connection)
                self._validate(migrations, applied)
                pending = [
                    migration
                    for migration in migrations
                    if migration.version not in applied
                    and (target_version is None or migration.version <= target_version)
                ]
                if not pending:
                    logger.info("migrations_up_to_date", extra={"directory": str(self._directory)})
                    return []
                for migration in pending:
                    self._apply(connection, migration)
        return pending

    def _validate(self, migrations: list[Migration], applied: dict[int, AppliedMigration]) -> None:
        local = {migration.version: migration for migration in migrations}
        for version, record in sorted(applied.items()):
            migration = local.get(version)
            if migration is None:
                if self._ignore_missing:
                    continue
                raise MigrationMissingError(f"{version}_{record.description.replace(' ', '_')}")
            if self._validate_checksums and migration.checksum != record.checksum:
                raise MigrationChecksumError(migration.name)

    def _apply(self, connection: Connection, migration: Migration) -> None:
        start = time.perf_counter()
        try:
            with connection.begin():
                _check_dependencies(connection, migration)
                for statement in migration.statements():
                    # No parameters: psycopg would read a literal % as a placeholder.
                    connection.exec_driver_sql(
                        statement, execution_options={"no_parameters": True}
                    )
                elapsed_ms = int((time.perf_counter() - start) * 1000)
                connection.execute(
                    insert(schema_migrations).values(
                        version=migration.version,
                        description=migration.description,
                        checksum=migration.checksum,
                        applied_at=datetime.now(timezone.utc),
                        execution_ms=elapsed_ms,
                    )
                )
        except MigrationError:
            MIGRATION_FAILURES.inc()
            logger.error("migration_failed", extra={"migration": migration.name})
            raise
        except SQLAlchemyError as exc:
            MIGRATION_FAILURES.inc()
            reason = str(getattr(exc, "orig", None) or exc).strip()
            logger.error("migration_failed", extra={"migration": migration.name, "detail": reason})
            raise MigrationFailedError(migration.name, reason) from exc
        duration = time.perf_counter() - start
        MIGRATIONS_APPLIED.inc()
        MIGRATION_DURATION.observe(duration)
        logger.info(
            "migration_applied",
            extra={
                "migration": migration.name,
                "version": migration.version,
                "duration_ms": int(duration * 1000),
            },
        )


def _create_tracking_table(connection: Connection) -> None:
    with connection.begin():
        schema_migrations.create(connection, checkfirst=True)


def _load_applied(connection: Connection) -> dict[int, AppliedMigration]:
    rows = connection.execute(select(schema_migrations).order_by(schema_migrations.c.version))
    return {
        row.version: AppliedMigration(
            version=row.version,
            description=row.description,
            checksum=row.checksum,
            applied_at=row.applied_at,
            execution_ms=row.execution_ms,
        )
        for row in rows
    }


def _check_dependencies(connection: Connection, migration: Migration) -> None:
    referenced = referenced_tables(migration.sql) - created_tables(migration.sql)
    if not referenced:
        return
    inspector = inspect(connection)
    missing = sorted(name for name in referenced if not inspector.has_table(name))
    if missing:
        raise MissingDependencyError(migration.name, missing)


@contextmanager
def _migration_lock(connection: Connection) -> Iterator[None]:
    if connection.dialect.name != "postgresql":
        yield
        return
    with connection.begin():
        connection.execute(text("SELECT pg_advisory_lock(:key)"), {"key": ADVISORY_LOCK_KEY})
    try:
        yield
    finally:
        with connection.begin():
            connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": ADVISORY_LOCK_KEY})


def run_migrations(
    engine: Engine,
    directory: Path,
    *,
    validate_checksums: bool = True,
    ignore_missing: bool = False,
) -> list[Migration]:
    runner = MigrationRunner(
        engine,
        directory,
        validate_checksums=validate_checksums,
        ignore_missing=ignore_missing,
    )
    return runner.run()
