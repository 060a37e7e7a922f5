from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path

from credstore.schema.errors import InvalidMigrationError
from credstore.utils.sql import scan, split_statements


_FILENAME = re.compile(r"^(?P<version>\d+)_(?P<description>[A-Za-z0-9][A-Za-z0-9_\-]*)\.sql$")
_IDENTIFIER = r'(?:"[^"]+"|[A-Za-z_][A-Za-z0-9_$]*)'
_QUALIFIED = rf"{_IDENTIFIER}(?:\s*\.\s*{_IDENTIFIER})?"
_CREATE_TABLE = re.compile(
    rf"\bCREATE\s+(?:(?:GLOBAL|LOCAL)\s+)?(?:(?:TEMP|TEMPORARY|UNLOGGED)\s+)?TABLE\s+"
    rf"(?:IF\s+NOT\s+EXISTS\s+)?(?P<name>{_QUALIFIED})",
    re.IGNORECASE,
)
_REFERENCES = re.compile(rf"\bREFERENCES\s+(?P<name>{_QUALIFIED})", re.IGNORECASE)


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    path: Path
    sql: str
    checksum: str

    @property
    def name(self) -> str:
        return self.path.stem

    def statements(self) -> list[str]:
        return split_statements(self.sql)


def parse_migration_filename(filename: str) -> tuple[int, str]:
    match = _FILENAME.match(filename)
    if match is None:
        raise InvalidMigrationError(
            f"Migration file name must look like <version>_<description>.sql: {filename}",
            path=filename,
        )
    return int(match.group("version")), match.group("description")


def load_migration(path: Path) -> Migration:
    version, description = parse_migration_filename(path.name)
    raw = path.read_bytes()
    return Migration(
        version=version,
        description=description.replace("_", " "),
        path=path,
        sql=raw.decode("utf-8"),
        checksum=hashlib.sha384(raw).hexdigest(),
    )


def discover_migrations(directory: Path) -> list[Migration]:
    if not directory.is_dir():
        raise InvalidMigrationError(
            f"Migrations directory not found: {directory}", path=str(directory)
        )
    migrations = [load_migration(path) for path in sorted(directory.glob("*.sql"))]
    migrations.sort(key=lambda migration: migration.version)
    seen: dict[int, Migration] = {}
    for migration in migrations:
        previous = seen.get(migration.version)
        if previous is not None:
            raise InvalidMigrationError(
                f"Duplicate migration version {migration.version}: "
                f"{previous.path.name} and {migration.path.name}",
                path=str(migration.path),
            )
        seen[migration.version] = migration
    return migrations


def _executable_text(sql: str) -> str:
    # String bodies and comments are blanked so a REFERENCES inside them is ignored.
    parts: list[str] = []
    for segment in scan(sql):
        if segment.kind == "code" or segment.text.startswith('"'):
            parts.append(segment.text)
        else:
            parts.append(" ")
    return "".join(parts)


def normalize_table_name(name: str) -> str:
    """Bare table name; unquoted identifiers fold to lower case like PostgreSQL."""
    last = re.findall(_IDENTIFIER, name)[-1]
    if last.startswith('"'):
        return last[1:-1]
    return last.lower()


def created_tables(sql: str) -> set[str]:
    text = _executable_text(sql)
    return {normalize_table_name(m.group("name")) for m in _CREATE_TABLE.finditer(text)}


def referenced_tables(sql: str) -> set[str]:
    text = _executable_text(sql)
    return {normalize_table_name(m.group("name")) for m in _REFERENCES.finditer(text)}
