"""Application entry point for the Storefront API service."""

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.routes.auth import router as auth_router
from storefront.api.routes.billing import router as billing_router
from storefront.api.routes.categories import router as categories_router
from storefront.api.routes.metrics import router as metrics_router
from storefront.api.routes.products import router as products_router
from storefront.api.routes.stores import router as stores_router
from storefront.core.config import settings
from storefront.core.db import create_all, get_session
from storefront.core.errors import register_exception_handlers
from storefront.core.logging import setup_logging
from storefront.core.middleware import BodySizeLimitMiddleware, RequestContextLogMiddleware
from storefront.core.rate_limit import init_rate_limiter
from storefront.schemas.common import ErrorResponse

API_PREFIX = "/api/v1"
ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 413, 429)}

setup_logging()

app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)

init_rate_limiter(app)
register_exception_handlers(app)

app.add_middleware(RequestContextLogMiddleware)


def _cors_origins() -> list[str]:
    if settings.ENV == "prod":
        if not settings.CORS_ALLOWED_ORIGINS:
            raise RuntimeError("CORS_ALLOWED_ORIGINS must be configured for prod")
        return settings.CORS_ALLOWED_ORIGINS
    return settings.CORS_ALLOWED_ORIGINS or ["http://localhost:3000", "http://localhost:5173"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Webhook-Signature"],
)

app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
async def startup_event():
    if settings.DB_CREATE_ALL:
        await create_all()
        logger.info("database_tables_ready")


@app.get("/api/healthz", tags=["system"], summary="Liveness probe")
def healthz() -> dict[str, str]:
    """Simple liveness probe that load balancers and monitors can call."""

    return {"status": "ok"}


@app.get("/api/readyz", tags=["system"], summary="Readiness probe")
async def readyz(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
        return {"ready": True}
    except SQLAlchemyError:
        raise HTTPException(status_code=503, detail="Database not reachable")


app.include_router(auth_router, prefix=API_PREFIX, responses=ERROR_RESPONSES)
app.include_router(stores_router, prefix=API_PREFIX, responses=ERROR_RESPONSES)
app.include_router(categories_router, prefix=API_PREFIX, responses=ERROR_RESPONSES)
app.include_router(products_router, prefix=API_PREFIX, responses=ERROR_RESPONSES)
app.include_router(billing_router, prefix=API_PREFIX, responses=ERROR_RESPONSES)
app.include_router(metrics_router, prefix=API_PREFIX, responses=ERROR_RESPONSES)
