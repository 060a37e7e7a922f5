from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from credstore.utils.errors import AppError, ConflictError, ForeignKeyViolationError


UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _sqlstate(exc: IntegrityError) -> str | None:
    orig = exc.orig
    # psycopg 3 exposes ``sqlstate``, psycopg2 ``pgcode``.
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _constraint_name(exc: IntegrityError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None)


def is_unique_violation(exc: IntegrityError) -> bool:
    state = _sqlstate(exc)
    if state is not None:
        return state == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(exc.orig)


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    state = _sqlstate(exc)
    if state is not None:
        return state == FOREIGN_KEY_VIOLATION
    return "FOREIGN KEY constraint failed" in str(exc.orig)


def translate_integrity_error(
    exc: IntegrityError,
    *,
    conflict_message: str = "Resource already exists",
    missing_reference_message: str = "Referenced resource does not exist",
) -> AppError | None:
    """Map a driver integrity error onto the application error it stands for.

    Other violations (NOT NULL, CHECK) return ``None``; the caller re-raises
    the ``IntegrityError``.
    """
    constraint = _constraint_name(exc)
    if is_unique_violation(exc):
        return ConflictError(conflict_message, constraint=constraint)
    if is_foreign_key_violation(exc):
        return ForeignKeyViolationError(missing_reference_message, constraint=constraint)
    return None
