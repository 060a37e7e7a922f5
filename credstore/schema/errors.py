from __future__ import annotations

from credstore.utils.errors import AppError


class InvalidMigrationError(AppError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(
            code="invalid_migration",
            message=message,
            classification="server",
            status_code=500,
            extra={"path": path} if path else None,
        )


class MigrationError(AppError):
    """Base for failures tied to one named migration."""

    def __init__(
        self,
        code: str,
        message: str,
        migration: str,
        extra: dict | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            classification="server",
            status_code=500,
            extra={"migration": migration, **(extra or {})},
        )
        self.migration = migration


class MigrationFailedError(MigrationError):
    def __init__(self, migration: str, reason: str) -> None:
        super().__init__(
            code="migration_failed",
            message=f"Migration {migration} failed: {reason}",
            migration=migration,
        )
        self.reason = reason


class MissingDependencyError(MigrationError):
    def __init__(self, migration: str, missing: list[str]) -> None:
        super().__init__(
            code="migration_missing_dependency",
            message=(
                f"Migration {migration} references undefined "
                f"table(s): {', '.join(missing)}"
            ),
            migration=migration,
            extra={"missing": missing},
        )
        self.missing = missing


class MigrationChecksumError(MigrationError):
    def __init__(self, migration: str) -> None:
        super().__init__(
            code="migration_checksum_mismatch",
            message=f"Migration {migration} was modified after it was applied",
            migration=migration,
        )


class MigrationMissingError(MigrationError):
    def __init__(self, migration: str) -> None:
        super().__init__(
            code="migration_missing",
            message=f"Migration {migration} was applied but is no longer present",
            migration=migration,
        )
