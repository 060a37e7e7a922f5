"""Correlation id for the request being served, carried in ``X-Request-Id``.

An inbound id is reused only when it is a short token of safe characters;
anything else is replaced with a fresh one before it reaches logs or headers.
"""

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar


REQUEST_ID_HEADER = "X-Request-Id"

_ACCEPTED = re.compile(r"[A-Za-z0-9._:-]{1,128}")

_current: ContextVar[str | None] = ContextVar("credstore_request_id", default=None)


def accept_request_id(candidate: str | None) -> str:
    if candidate is not None:
        candidate = candidate.strip()
        if _ACCEPTED.fullmatch(candidate):
            return candidate
    return uuid.uuid4().hex


def bind_request_id(candidate: str | None = None) -> str:
    request_id = accept_request_id(candidate)
    _current.set(request_id)
    return request_id


def current_request_id() -> str | None:
    return _current.get()
