from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from credstore.utils.request_id import current_request_id


# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}

_DRIVER_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, ``extra`` fields as top-level keys."""

    def __init__(self, service: str = "credstore") -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": current_request_id(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str, service: str = "credstore") -> None:
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    root.setLevel(level)
    formatter = JsonFormatter(service)
    for handler in root.handlers:
        handler.setFormatter(formatter)
    for name in _DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
