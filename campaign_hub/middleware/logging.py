"""
Request logging for Campaign Hub

Every request gets a request id (taken from ``X-Request-ID`` when the caller
sends one) that is bound into structlog's context together with the trace id,
so log lines written by services during the request carry both.
"""
import time
import uuid
from typing import Optional
from fastapi import Request
from opentelemetry import trace
import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def current_trace_id() -> str:
    span_context = trace.get_current_span().get_span_context()
    return format(span_context.trace_id, "032x") if span_context.is_valid else ""


def route_template(request: Request) -> Optional[str]:
    """Matched route pattern, e.g. ``/campaigns/{campaign_id}``"""
    route = request.scope.get("route")
    return getattr(route, "path", None)


async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

    clear_contextvars()
    bind_contextvars(request_id=request_id, trace_id=current_trace_id())

    started = time.perf_counter()
    logger.info(
        "Request started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else "",
    )

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "Request failed",
            method=request.method,
            path=request.url.path,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        clear_contextvars()
        raise

    response.headers[REQUEST_ID_HEADER] = request_id
    log = logger.warning if response.status_code >= 500 else logger.info
    log(
        "Request completed",
        method=request.method,
        route=route_template(request) or request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    clear_contextvars()
    return response
