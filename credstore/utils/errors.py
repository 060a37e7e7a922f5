from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ErrorDetail:
    code: str
    message: str
    classification: str
    status_code: int
    extra: dict[str, Any] | None = None


class AppError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        classification: str,
        status_code: int,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.detail = ErrorDetail(
            code=code,
            message=message,
            classification=classification,
            status_code=status_code,
            extra=extra,
        )


class CircuitBreakerOpenError(AppError):
    def __init__(self, message: str = "Database circuit open") -> None:
        super().__init__(
            code="db_circuit_open",
            message=message,
            classification="dependency",
            status_code=503,
        )


class RequestTimeoutError(AppError):
    def __init__(self, message: str = "Request timeout") -> None:
        super().__init__(
            code="request_timeout",
            message=message,
            classification="transient",
            status_code=504,
        )


class ConflictError(AppError):
    """A unique or primary key constraint rejected the write."""

    def __init__(
        self, message: str = "Resource already exists", constraint: str | None = None
    ) -> None:
        super().__init__(
            code="conflict",
            message=message,
            classification="client",
            status_code=409,
            extra={"constraint": constraint} if constraint else None,
        )
        self.constraint = constraint


class ForeignKeyViolationError(AppError):
    """A write referenced a row that does not exist."""

    def __init__(
        self, message: str = "Referenced resource does not exist", constraint: str | None = None
    ) -> None:
        super().__init__(
            code="foreign_key_violation",
            message=message,
            classification="client",
            status_code=422,
            extra={"constraint": constraint} if constraint else None,
        )
        self.constraint = constraint
