"""Structured JSON request logging middleware for the Watson API.

:class:`RequestLoggingMiddleware` records every HTTP request as a structured
JSON log entry, enriched with:

* A **correlation ID** — propagated from the incoming ``X-Correlation-ID``
  (or ``X-Request-ID``) header, or generated as a UUID v4 when absent.
* The matched **route template** (e.g. ``/v1/documents/{document_id}``) so
  requests for different documents or workflows group under one endpoint.
  ``null`` when no route matched.
* Whether the request **mutates** state.  Every mutation rewrites the
  snapshot, so these are the requests that carry write-through latency.
* Request metadata: HTTP method, URL path, response status code, and wall-clock
  duration in milliseconds.

Entries are logged at ``INFO``; a ``5xx`` response (including a ``503`` for a
failed snapshot write-through) is logged at ``WARNING``.

The correlation ID is also stored on ``request.state.correlation_id`` for
downstream handlers and echoed back in the ``X-Correlation-ID`` response
header.

Log entry format
----------------
::

    {
      "event": "http_request",
      "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
      "method": "GET",
      "path": "/v1/documents/0b7c2a3e-5f1d-4c59-9f0e-3d2b8f1e6a47",
      "route": "/v1/documents/{document_id}",
      "mutation": false,
      "status_code": 200,
      "duration_ms": 1.7
    }
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Headers checked (in priority order) for an incoming correlation ID.
_CORRELATION_HEADERS: tuple[str, ...] = ("x-correlation-id", "x-request-id")

_MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Structured JSON per-request logging middleware."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = self._extract_correlation_id(request)
        request.state.correlation_id = correlation_id

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        log_entry = {
            "event": "http_request",
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "route": self._route_template(request),
            "mutation": request.method in _MUTATING_METHODS,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, json.dumps(log_entry))

        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @staticmethod
    def _extract_correlation_id(request: Request) -> str:
        """Return the first non-empty correlation header, or a fresh UUID v4."""
        for header in _CORRELATION_HEADERS:
            value = request.headers.get(header, "").strip()
            if value:
                return value
        return str(uuid.uuid4())

    @staticmethod
    def _route_template(request: Request) -> str | None:
        # The router records the matched route in the shared ASGI scope.
        route = request.scope.get("route")
        return getattr(route, "path", None)
