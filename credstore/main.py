from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus

import anyio
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from credstore.accounts.router import router as accounts_router
from credstore.api.health import router as health_router
from credstore.core.logging import configure_logging
from credstore.core.metrics import ERROR_COUNT, REQUEST_COUNT, REQUEST_LATENCY
from credstore.core.settings import get_settings
from credstore.db.session import get_engine, run_with_db_retry
from credstore.passkeys.router import router as passkeys_router
from credstore.schema.runner import MigrationRunner
from credstore.utils.error_payloads import error_payload
from credstore.utils.errors import AppError, RequestTimeoutError
from credstore.utils.request_id import REQUEST_ID_HEADER, bind_request_id, current_request_id


@asynccontextmanager
async def lifespan(app: FastAPI):
    log = logging.getLogger("credstore.startup")
    settings = get_settings()

    db_ready = False
    for attempt in range(1, settings.startup_db_attempts + 1):
        try:

            def _validate_db(session):
                session.execute(text("SELECT 1"))

            run_with_db_retry(_validate_db, operation_name="startup_validation")
            db_ready = True
            break
        except Exception as exc:
            log.warning("startup_db_not_ready attempt=%d error=%s", attempt, exc)
            await anyio.sleep(min(2.0 * attempt, 10.0))

    if not db_ready:
        log.error("startup_db_unavailable: continuing without migrations")
    elif settings.migrate_on_startup:
        runner = MigrationRunner(
            get_engine(),
            settings.migrations_dir,
            validate_checksums=settings.migrations_validate_checksums,
            ignore_missing=settings.migrations_ignore_missing,
        )
        # Startup aborts when the schema cannot be brought current.
        applied = runner.run()
        log.info("startup_migrations_applied", extra={"count": len(applied)})

    yield


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, settings.app_name)

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
    app.state.started_at = datetime.now(timezone.utc)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        start = time.perf_counter()
        status_code = HTTPStatus.INTERNAL_SERVER_ERROR
        metric_path = _metric_path_template(request)
        try:
            with anyio.fail_after(settings.request_timeout_seconds):
                response = await call_next(request)
            status_code = response.status_code
        except TimeoutError:
            status_code = HTTPStatus.GATEWAY_TIMEOUT
            exc = RequestTimeoutError()
            response = _error_response(
                exc.detail.status_code,
                error_payload(
                    code=exc.detail.code,
                    message=exc.detail.message,
                    classification=exc.detail.classification,
                ),
            )
        finally:
            duration = time.perf_counter() - start
            REQUEST_LATENCY.labels(path=metric_path).observe(duration)
            REQUEST_COUNT.labels(
                method=request.method,
                path=metric_path,
                status=str(int(status_code)),
            ).inc()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logging.getLogger("credstore").warning("validation_error", extra={"detail": str(exc)})
        payload = error_payload(
            code="validation_error",
            message=str(exc),
            classification="client",
        )
        ERROR_COUNT.labels(code="validation_error", classification="client").inc()
        return _error_response(400, payload)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        code, classification = _map_http_error(exc.status_code)
        payload = error_payload(
            code=code,
            message=str(exc.detail),
            classification=classification,
        )
        ERROR_COUNT.labels(code=code, classification=classification).inc()
        return _error_response(exc.status_code, payload)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        detail = jsonable_encoder(exc.errors())
        payload = error_payload(
            code="validation_error",
            message="Request validation failed",
            classification="client",
            extra={"detail": detail},
        )
        ERROR_COUNT.labels(code="validation_error", classification="client").inc()
        return _error_response(422, payload)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        ERROR_COUNT.labels(code=exc.detail.code, classification=exc.detail.classification).inc()
        if exc.detail.status_code >= 500:
            logging.getLogger("credstore").error(
                exc.detail.code, extra={"detail": exc.detail.message}
            )
        payload = error_payload(
            code=exc.detail.code,
            message=exc.detail.message,
            classification=exc.detail.classification,
            extra=exc.detail.extra,
        )
        return _error_response(exc.detail.status_code, payload)

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
        logging.getLogger("credstore").warning("db_error", extra={"detail": str(exc)})
        ERROR_COUNT.labels(code="db_error", classification="dependency").inc()
        payload = error_payload(
            code="db_error",
            message="Database error",
            classification="dependency",
        )
        return _error_response(503, payload)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logging.getLogger("credstore").exception("unhandled_error")
        ERROR_COUNT.labels(code="internal_error", classification="server").inc()
        payload = error_payload(
            code="internal_error",
            message="Unexpected error",
            classification="server",
        )
        return _error_response(500, payload)

    app.include_router(health_router)
    app.include_router(accounts_router, prefix=settings.api_v1_prefix)
    app.include_router(passkeys_router, prefix=settings.api_v1_prefix)

    return app


def _map_http_error(status_code: int) -> tuple[str, str]:
    if status_code == 404:
        return "not_found", "client"
    if status_code == 405:
        return "method_not_allowed", "client"
    if status_code == 409:
        return "conflict", "client"
    if status_code == 422:
        return "validation_error", "client"
    if 400 <= status_code < 500:
        return "bad_request", "client"
    return "http_error", "server"


def _error_response(status_code: int, payload: dict) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=payload)
    request_id = current_request_id()
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _metric_path_template(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if isinstance(path, str) and path:
        return path
    return request.url.path


app = create_app()
