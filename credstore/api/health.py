from __future__ import annotations

import logging
import os
import time

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

from credstore.core.settings import get_settings
from credstore.db.session import get_engine, run_with_db_retry
from credstore.schema.runner import MigrationRunner


router = APIRouter(tags=["health"])

logger = logging.getLogger(__name__)


@router.get("/healthz")
def healthz() -> dict:
    start_time = time.time()
    return {"status": "ok", "response_time": time.time() - start_time}


@router.get("/readyz")
def readyz() -> Response:
    def _op(session):
        session.execute(text("SELECT 1"))

    try:
        run_with_db_retry(_op, operation_name="readyz")
    except Exception as exc:
        logger.warning("readyz_db_unavailable", extra={"detail": str(exc)})
        return JSONResponse(status_code=503, content={"status": "degraded", "database": "down"})

    settings = get_settings()
    runner = MigrationRunner(get_engine(), settings.migrations_dir)
    status = runner.status()
    if not status.is_current:
        return JSONResponse(
            status_code=503,
            content={
                "status": "degraded",
                "schema": "pending_migrations",
                "pending": [migration.name for migration in status.pending],
            },
        )
    return JSONResponse(content={"status": "ready", "schema_version": status.current_version})


@router.get("/metrics")
def metrics() -> Response:
    from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

    multiproc_dir = os.getenv("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        from prometheus_client import multiprocess

        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
