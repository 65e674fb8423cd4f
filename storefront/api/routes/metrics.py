"""Event tracking and store analytics endpoints.

Storefront visitors are anonymous, so the per-store tracking endpoints are
public and rate limited per client address.
"""

import json
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.db import get_session
from storefront.core.deps import get_current_user
from storefront.core.rate_limit import limiter
from storefront.models.enums import EntityType, EventType
from storefront.models.user import User
from storefront.schemas.metrics import StoreEventCreate, StoreEventOut, StoreMetricsOut
from storefront.services import metrics

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _user_agent_metadata(request: Request) -> str:
    return json.dumps({"userAgent": request.headers.get("User-Agent", "")})


async def _track(
    session: AsyncSession,
    store_id: uuid.UUID,
    event_type: EventType,
    entity_id: Optional[uuid.UUID],
    entity_type: EntityType,
    metadata: str,
) -> StoreEventOut:
    return await metrics.create_event(
        session,
        store_id,
        StoreEventCreate(
            event_type=event_type,
            entity_id=entity_id,
            entity_type=entity_type,
            metadata=metadata,
        ),
    )


@router.post("/events", response_model=StoreEventOut, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: StoreEventCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    store_id = await metrics.require_user_store(session, user)
    return await metrics.create_event(session, store_id, payload)


@router.post(
    "/events/store-access/{store_id}",
    response_model=StoreEventOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.PUBLIC_EVENT_RATE)
async def track_store_access(
    store_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    return await _track(
        session, store_id, EventType.STORE_ACCESS, store_id, EntityType.STORE, _user_agent_metadata(request)
    )


@router.post(
    "/events/product-click/{store_id}/{product_id}",
    response_model=StoreEventOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.PUBLIC_EVENT_RATE)
async def track_product_click(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    return await _track(
        session, store_id, EventType.PRODUCT_CLICK, product_id, EntityType.PRODUCT, _user_agent_metadata(request)
    )


@router.post(
    "/events/product-conversion/{store_id}/{product_id}",
    response_model=StoreEventOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.PUBLIC_EVENT_RATE)
async def track_product_conversion(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    request: Request,
    details: Optional[Dict[str, Any]] = Body(default=None),
    session: AsyncSession = Depends(get_session),
):
    metadata = json.dumps(details if details else {"type": "conversion"}, default=str)
    return await _track(
        session, store_id, EventType.PRODUCT_CONVERSION, product_id, EntityType.PRODUCT, metadata
    )


@router.post(
    "/events/category-click/{store_id}/{category_id}",
    response_model=StoreEventOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.PUBLIC_EVENT_RATE)
async def track_category_click(
    store_id: uuid.UUID,
    category_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    return await _track(
        session, store_id, EventType.CATEGORY_CLICK, category_id, EntityType.CATEGORY, _user_agent_metadata(request)
    )


@router.post(
    "/events/category-access/{category_id}",
    response_model=StoreEventOut,
    status_code=status.HTTP_201_CREATED,
)
async def track_category_access(
    category_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    store_id = await metrics.require_user_store(session, user)
    return await _track(
        session, store_id, EventType.CATEGORY_ACCESS, category_id, EntityType.CATEGORY, _user_agent_metadata(request)
    )


@router.get("/store/{store_id}", response_model=StoreMetricsOut)
async def get_store_metrics(
    store_id: uuid.UUID,
    days: int = Query(30, ge=1, le=365),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await metrics.require_store_access(session, store_id, user)
    return await metrics.get_store_metrics(session, store_id, days)


@router.get("/store/{store_id}/daily", response_model=StoreMetricsOut)
async def get_daily_metrics(
    store_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await metrics.require_store_access(session, store_id, user)
    return await metrics.get_store_metrics(session, store_id, 30)
