from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import inspect, text

from credstore.schema.errors import (
    MigrationChecksumError,
    MigrationFailedError,
    MigrationMissingError,
    MissingDependencyError,
)
from credstore.schema.runner import MigrationRunner
from tests.utils.schema import SQLITE_MIGRATIONS, write_migrations


def _tables(engine) -> set[str]:
    return set(inspect(engine).get_table_names())


def test_run_applies_migrations_in_order(engine, migrations_dir: Path) -> None:
    applied = MigrationRunner(engine, migrations_dir).run()
    assert [m.version for m in applied] == [20260102210424, 20260106165000, 20260106165016]
    expected = {"accounts", "passkey_users", "passkey_user_credentials", "schema_migrations"}
    assert expected <= _tables(engine)


def test_second_run_is_a_no_op(engine, migrations_dir: Path) -> None:
    runner = MigrationRunner(engine, migrations_dir)
    runner.run()
    assert runner.run() == []
    with engine.connect() as connection:
        count = connection.execute(text("SELECT COUNT(*) FROM schema_migrations")).scalar_one()
    assert count == 3


def test_status_reports_applied_and_pending(engine, migrations_dir: Path) -> None:
    runner = MigrationRunner(engine, migrations_dir)
    before = runner.status()
    assert before.current_version is None
    assert len(before.pending) == 3

    runner.run(target_version=20260106165000)
    after = runner.status()
    assert after.current_version == 20260106165000
    assert [m.name for m in after.pending] == ["20260106165016_passkey_user_credentials"]
    assert not after.is_current
    assert after.applied[0].description == "users"


def test_missing_dependency_fails_loudly(engine, tmp_path: Path) -> None:
    directory = write_migrations(
        tmp_path / "migrations",
        {
            "20260106165016_passkey_user_credentials.sql": SQLITE_MIGRATIONS[
                "20260106165016_passkey_user_credentials.sql"
            ],
        },
    )
    runner = MigrationRunner(engine, directory)
    with pytest.raises(MissingDependencyError) as excinfo:
        runner.run()
    assert excinfo.value.migration == "20260106165016_passkey_user_credentials"
    assert excinfo.value.missing == ["passkey_users"]
    assert "passkey_user_credentials" not in _tables(engine)
    assert runner.status().applied == []


def test_self_referencing_table_is_not_a_missing_dependency(engine, tmp_path: Path) -> None:
    directory = write_migrations(
        tmp_path / "migrations",
        {
            "1_tree.sql": (
                "CREATE TABLE IF NOT EXISTS nodes("
                "id INTEGER PRIMARY KEY, parent INTEGER REFERENCES nodes(id));"
            ),
        },
    )
    assert len(MigrationRunner(engine, directory).run()) == 1


def test_failed_migration_is_reported_and_resumable(engine, tmp_path: Path) -> None:
    directory = write_migrations(
        tmp_path / "migrations",
        {
            "1_first.sql": "CREATE TABLE IF NOT EXISTS alpha(id INTEGER PRIMARY KEY);",
            "2_broken.sql": (
                "CREATE TABLE IF NOT EXISTS beta(id INTEGER PRIMARY KEY);\n"
                "CREATE TABLEX oops;"
            ),
            "3_third.sql": "CREATE TABLE IF NOT EXISTS gamma(id INTEGER PRIMARY KEY);",
        },
    )
    runner = MigrationRunner(engine, directory)
    with pytest.raises(MigrationFailedError) as excinfo:
        runner.run()
    assert excinfo.value.migration == "2_broken"
    assert "2_broken" in str(excinfo.value)

    status = runner.status()
    assert [record.version for record in status.applied] == [1]
    assert [m.version for m in status.pending] == [2, 3]
    tables = _tables(engine)
    assert "alpha" in tables
    assert "beta" not in tables
    assert "gamma" not in tables

    (directory / "2_broken.sql").write_text(
        "CREATE TABLE IF NOT EXISTS beta(id INTEGER PRIMARY KEY);", encoding="utf-8"
    )
    assert [m.version for m in runner.run()] == [2, 3]


def test_modified_applied_migration_is_rejected(engine, migrations_dir: Path) -> None:
    runner = MigrationRunner(engine, migrations_dir)
    runner.run()
    path = migrations_dir / "20260102210424_users.sql"
    path.write_text(path.read_text(encoding="utf-8") + "\n-- edited\n", encoding="utf-8")

    with pytest.raises(MigrationChecksumError):
        runner.run()
    assert MigrationRunner(engine, migrations_dir, validate_checksums=False).run() == []


def test_applied_migration_missing_from_disk(engine, migrations_dir: Path) -> None:
    MigrationRunner(engine, migrations_dir).run()
    (migrations_dir / "20260106165016_passkey_user_credentials.sql").unlink()

    with pytest.raises(MigrationMissingError) as excinfo:
        MigrationRunner(engine, migrations_dir).run()
    assert excinfo.value.migration.startswith("20260106165016")
    assert MigrationRunner(engine, migrations_dir, ignore_missing=True).run() == []


def test_new_migration_applies_after_existing_ones(engine, migrations_dir: Path) -> None:
    runner = MigrationRunner(engine, migrations_dir)
    runner.run()
    write_migrations(
        migrations_dir,
        {
            "20260201000000_account_index.sql": (
                "CREATE INDEX IF NOT EXISTS idx_accounts_name ON accounts(name);"
            ),
        },
    )
    assert [m.name for m in runner.run()] == ["20260201000000_account_index"]


def test_status_does_not_touch_a_fresh_database(engine, migrations_dir: Path) -> None:
    status = MigrationRunner(engine, migrations_dir).status()
    assert status.applied == []
    assert len(status.pending) == 3
    assert "schema_migrations" not in _tables(engine)


def test_percent_signs_reach_the_database_verbatim(engine, tmp_path: Path) -> None:
    directory = write_migrations(
        tmp_path / "migrations",
        {
            "1_guard.sql": (
                "CREATE TABLE IF NOT EXISTS guarded(name TEXT CHECK (name NOT LIKE '%!%'));\n"
                "INSERT INTO guarded(name) VALUES ('100%');"
            ),
        },
    )
    assert len(MigrationRunner(engine, directory).run()) == 1
    with engine.connect() as connection:
        names = connection.execute(text("SELECT name FROM guarded")).scalars().all()
    assert names == ["100%"]
