"""Run catalog queries on a session or connection.

Driver and SQLAlchemy errors are not caught here: callers run these inside
``run_with_db_retry``, which has to see them to retry or roll back.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator, Union

from sqlalchemy.engine import Connection, Result, RowMapping
from sqlalchemy.exc import MultipleResultsFound
from sqlalchemy.orm import Session

from credstore.core.metrics import QUERY_DURATION
from credstore.queries.catalog import NamedQuery
from credstore.queries.errors import QueryExecutionError


Executor = Union[Session, Connection]


@contextmanager
def _timed(query: NamedQuery) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        QUERY_DURATION.labels(query=query.name).observe(time.perf_counter() - start)


def _run(executor: Executor, query: NamedQuery, args: tuple[Any, ...]) -> Result:
    statement, params = query.bind(*args)
    return executor.execute(statement, params)


def fetch_optional(executor: Executor, query: NamedQuery, *args: Any) -> RowMapping | None:
    """Zero or one row. ``None`` is the ordinary not-found outcome."""
    with _timed(query):
        result = _run(executor, query, args)
        try:
            return result.mappings().one_or_none()
        except MultipleResultsFound as exc:
            raise QueryExecutionError(query.name, "expected at most one row") from exc


def fetch_one(executor: Executor, query: NamedQuery, *args: Any) -> RowMapping:
    with _timed(query):
        row = _run(executor, query, args).mappings().first()
    if row is None:
        raise QueryExecutionError(query.name, "expected a row, found none")
    return row


def fetch_all(executor: Executor, query: NamedQuery, *args: Any) -> list[RowMapping]:
    with _timed(query):
        return list(_run(executor, query, args).mappings().all())


def execute(executor: Executor, query: NamedQuery, *args: Any) -> int:
    with _timed(query):
        return _run(executor, query, args).rowcount
