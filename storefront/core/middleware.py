"""Request id propagation, access logs and the request size guard."""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.core.config import settings
from storefront.core.errors import error_body
from storefront.core.logging import request_id_ctx_var, user_id_ctx_var
from storefront.core.rate_limit import client_ip

# polled by load balancers; only logged at DEBUG
PROBE_PATHS = frozenset({"/api/healthz", "/api/readyz"})


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Sets the request id context and writes one access log line per request.

    An incoming ``X-Request-ID`` is reused so ids can be followed across the
    proxy and the API; otherwise a new one is generated. The id is echoed on
    the response.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        request_token = request_id_ctx_var.set(request_id)
        user_token = user_id_ctx_var.set("-")
        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            path = request.url.path
            status_code = response.status_code if response else 500
            log = logger.bind(
                method=request.method,
                path=path,
                status=status_code,
                client_ip=client_ip(request),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            if path in PROBE_PATHS and status_code < 400:
                log.debug("request_completed")
            elif status_code >= 500:
                log.warning("request_completed")
            else:
                log.info("request_completed")
            if response is not None:
                response.headers.setdefault("X-Request-ID", request_id)
            request_id_ctx_var.reset(request_token)
            user_id_ctx_var.reset(user_token)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared body exceeds ``MAX_REQUEST_BYTES``.

    Base64 image payloads are the large bodies here; refusing them from the
    header avoids buffering and decoding the upload first.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        content_length = request.headers.get("content-length")
        if content_length is None:
            return await call_next(request)
        if not content_length.isdigit():
            return JSONResponse(
                status_code=400,
                content=error_body(400, "Invalid Content-Length header", request.url.path),
            )
        limit = settings.MAX_REQUEST_BYTES
        if int(content_length) > limit:
            return JSONResponse(
                status_code=413,
                content=error_body(413, f"Request body exceeds the {limit} byte limit", request.url.path),
            )
        return await call_next(request)
