from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import TextClause, text

from credstore.core.settings import get_settings
from credstore.queries.errors import (
    QueryDefinitionError,
    QueryNotFoundError,
    QueryParameterError,
)
from credstore.utils.sql import rewrite_positional, split_statements


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamedQuery:
    """One ``.sql`` file: a single statement with ``$1 .. $n`` placeholders."""

    name: str
    sql: str
    path: Path | None
    param_count: int
    statement: TextClause = field(repr=False, compare=False)

    @classmethod
    def from_sql(cls, name: str, sql: str, path: Path | None = None) -> NamedQuery:
        statements = split_statements(sql)
        if len(statements) != 1:
            raise QueryDefinitionError(
                name, f"expected exactly one statement, found {len(statements)}"
            )
        rewritten, indices = rewrite_positional(statements[0])
        expected = list(range(1, len(indices) + 1))
        if indices != expected:
            raise QueryDefinitionError(
                name,
                "placeholders must be numbered contiguously from $1, found "
                + ", ".join(f"${index}" for index in indices),
            )
        return cls(
            name=name,
            sql=sql,
            path=path,
            param_count=len(indices),
            statement=text(rewritten),
        )

    def bind(self, *args: Any) -> tuple[TextClause, dict[str, Any]]:
        if len(args) != self.param_count:
            raise QueryParameterError(self.name, self.param_count, len(args))
        params = {f"p{index}": value for index, value in enumerate(args, start=1)}
        return self.statement, params


class QueryCatalog:
    def __init__(self, queries: dict[str, NamedQuery] | None = None) -> None:
        self._queries: dict[str, NamedQuery] = dict(queries or {})

    @classmethod
    def load(cls, directory: Path) -> QueryCatalog:
        directory = Path(directory)
        if not directory.is_dir():
            raise QueryDefinitionError(str(directory), "queries directory not found")
        queries: dict[str, NamedQuery] = {}
        for path in sorted(directory.rglob("*.sql")):
            name = path.relative_to(directory).with_suffix("").as_posix()
            queries[name] = NamedQuery.from_sql(name, path.read_text(encoding="utf-8"), path)
        logger.info(
            "query_catalog_loaded",
            extra={"directory": str(directory), "count": len(queries)},
        )
        return cls(queries)

    def add(self, name: str, sql: str) -> NamedQuery:
        query = NamedQuery.from_sql(name, sql)
        self._queries[name] = query
        return query

    def get(self, name: str) -> NamedQuery:
        try:
            return self._queries[name]
        except KeyError:
            raise QueryNotFoundError(name) from None

    def names(self) -> list[str]:
        return sorted(self._queries)

    def __contains__(self, name: object) -> bool:
        return name in self._queries

    def __len__(self) -> int:
        return len(self._queries)

    def __iter__(self) -> Iterator[NamedQuery]:
        return iter(self._queries[name] for name in self.names())


@lru_cache
def _load_catalog(directory: Path) -> QueryCatalog:
    return QueryCatalog.load(directory)


def get_query_catalog() -> QueryCatalog:
    return _load_catalog(get_settings().queries_dir.resolve())


def reset_query_catalog() -> None:
    _load_catalog.cache_clear()
