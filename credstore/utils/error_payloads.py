from __future__ import annotations

from credstore.utils.request_id import current_request_id


def failure_classification(code: str, classification: str) -> str:
    if classification in {"dependency", "transient"}:
        return "TRANSIENT"
    if code in {"request_timeout", "db_error", "db_circuit_open"}:
        return "TRANSIENT"
    return "FATAL"


def error_payload(
    *,
    code: str,
    message: str,
    classification: str,
    extra: dict | None = None,
) -> dict:
    payload: dict[str, object] = {
        "code": code,
        "message": message,
        "classification": classification,
        "failure_classification": failure_classification(code, classification),
        "request_id": current_request_id(),
    }
    if extra:
        payload["extra"] = extra
    return {"error": payload}
