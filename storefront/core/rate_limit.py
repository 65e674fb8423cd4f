"""Per-client rate limits for the login and public tracking endpoints.

Storefront pages are usually served through a CDN or load balancer, so the
socket peer is the proxy and every shopper would share one bucket. With
``TRUST_PROXY_HEADERS`` on, clients are keyed by the first
``X-Forwarded-For`` hop instead.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from storefront.core.config import settings
from storefront.core.errors import error_body


def client_ip(request: Request) -> Optional[str]:
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return request.client.host if request.client else None


def rate_limit_key(request: Request) -> str:
    return client_ip(request) or "unknown"


limiter = Limiter(key_func=rate_limit_key)


def init_rate_limiter(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content=error_body(429, f"Too many requests: {exc.detail}", request.url.path),
            headers={"Retry-After": str(exc.limit.limit.get_expiry())},
        )

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
