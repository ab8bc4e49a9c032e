"""
Request tracking for the tool HTTP surface.

Every request carries a short id: the caller's X-Request-ID when it sends a
usable one, a fresh one otherwise. The id lives in a context variable while
the request is handled, so RequestIdFilter can stamp it on log records
written by the tools, and it is echoed back on the response.
"""

import logging
import re
import time
import uuid
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

_TOOL_PATH = re.compile(r"^/tools/(?P<name>[A-Za-z0-9_]+)$")
_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]+$")

logger = logging.getLogger(__name__)


def get_request_id() -> str:
    """Id of the request being handled, or "" outside a request."""
    return request_id_ctx.get()


def choose_request_id(supplied: str | None) -> str:
    """Keep a well-formed caller id; otherwise generate an 8-char hex id."""
    if supplied:
        supplied = supplied.strip()
        if len(supplied) <= MAX_REQUEST_ID_LENGTH and _REQUEST_ID.match(supplied):
            return supplied
    return uuid.uuid4().hex[:8]


def describe_request(request: Request) -> str:
    """Log label: "tool <name>" for tool runs, "<METHOD> <path>" otherwise."""
    match = _TOOL_PATH.match(request.url.path)
    if match and request.method == "POST":
        return f"tool {match['name']}"
    return f"{request.method} {request.url.path}"


class RequestIdFilter(logging.Filter):
    """Adds `request_id` to every record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns the request id and logs each request with its duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = choose_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_ctx.set(req_id)
        label = describe_request(request)
        start_time = time.perf_counter()

        try:
            try:
                response = await call_next(request)
            except Exception:
                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.error(f"{label} failed after {elapsed_ms:.1f}ms", exc_info=True)
                raise

            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.info(f"{label} -> {response.status_code} in {elapsed_ms:.1f}ms")
        finally:
            request_id_ctx.reset(token)

        response.headers[REQUEST_ID_HEADER] = req_id
        response.headers["X-Response-Time"] = f"{elapsed_ms / 1000:.3f}s"
        return response
