"""FastAPI app for order priority service."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError

from .config import get_settings
from .db import init_db
from .errors import ApiError, PriorityEngineError, api_error_for, error_response
from .observability import configure_logging, log_event
from .routes import router
from .runtime import get_runtime

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("order_priority")


async def _stop(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Create tables, then run the change listener and retention job until shutdown."""
    init_db()
    runtime = get_runtime()
    listener_task = asyncio.create_task(runtime.listener.run())
    cleanup_task = asyncio.create_task(runtime.cleanup.run())
    log_event(logger, "order_priority_service_started", version=settings.service_version)
    try:
        yield
    finally:
        await _stop(listener_task)
        await _stop(cleanup_task)


app = FastAPI(title=settings.service_name, version=settings.service_version, lifespan=lifespan)
app.include_router(router)


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError):
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        trace_id=exc.trace_id or request.headers.get("x-trace-id"),
        details=exc.details,
    )


@app.exception_handler(PriorityEngineError)
async def handle_engine_error(request: Request, exc: PriorityEngineError):
    error = api_error_for(exc)
    log_event(logger, "order_priority_request_failed", path=request.url.path, code=error.code, error=error.message)
    return error_response(
        status_code=error.status_code,
        code=error.code,
        message=error.message,
        trace_id=request.headers.get("x-trace-id"),
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException):
    status_to_code = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "UNPROCESSABLE_ENTITY",
    }
    return error_response(
        status_code=exc.status_code,
        code=status_to_code.get(exc.status_code, "INTERNAL_SERVER_ERROR"),
        message=str(exc.detail),
        trace_id=request.headers.get("x-trace-id"),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", [])),
            "issue": err.get("msg", "invalid value"),
        }
        for err in exc.errors()
    ]
    return error_response(
        status_code=422,
        code="UNPROCESSABLE_ENTITY",
        message="Validation failed.",
        trace_id=request.headers.get("x-trace-id"),
        details=details,
    )
