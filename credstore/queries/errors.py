from __future__ import annotations

from credstore.utils.errors import AppError


class QueryNotFoundError(AppError):
    def __init__(self, name: str) -> None:
        super().__init__(
            code="query_not_found",
            message=f"Unknown query: {name}",
            classification="server",
            status_code=500,
            extra={"query": name},
        )
        self.name = name


class QueryDefinitionError(AppError):
    def __init__(self, name: str, message: str) -> None:
        super().__init__(
            code="invalid_query",
            message=f"Query {name}: {message}",
            classification="server",
            status_code=500,
            extra={"query": name},
        )
        self.name = name


class QueryParameterError(AppError):
    def __init__(self, name: str, expected: int, received: int) -> None:
        super().__init__(
            code="query_parameter_mismatch",
            message=f"Query {name} takes {expected} parameter(s), got {received}",
            classification="server",
            status_code=500,
            extra={"query": name, "expected": expected, "received": received},
        )
        self.name = name


class QueryExecutionError(AppError):
    def __init__(self, name: str, message: str) -> None:
        super().__init__(
            code="query_failed",
            message=f"Query {name}: {message}",
            classification="server",
            status_code=500,
            extra={"query": name},
        )
        self.name = name
