"""Interaction events and their per-day rollup.

Every recorded event triggers a recount of its UTC day, so ``store_metrics``
always holds one row per store per day whose counters match the raw
``store_events`` for that day. Reports read totals and daily rows from the
rollup and compute rankings straight from the events in the window.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import IllegalUserArgument, InsufficientPermission, ObjectNotFound
from storefront.models.base import utcnow
from storefront.models.category import Category
from storefront.models.enums import EventType
from storefront.models.product import Product
from storefront.models.store import Store
from storefront.models.store_event import StoreEvent
from storefront.models.store_metrics import StoreMetrics
from storefront.models.user import User
from storefront.schemas.metrics import (
    CategoryMetricsOut,
    DailyMetricsOut,
    ProductMetricsOut,
    StoreEventCreate,
    StoreEventOut,
    StoreMetricsOut,
)
from storefront.services.permissions import get_store, user_memberships

MAX_METADATA_LENGTH = 1000
TOP_LIMIT = 10
PRODUCT_NOT_FOUND = "Product not found"
CATEGORY_NOT_FOUND = "Category not found"

_COUNTERS = {
    EventType.STORE_ACCESS: "daily_accesses",
    EventType.PRODUCT_CLICK: "product_clicks",
    EventType.PRODUCT_CONVERSION: "product_conversions",
    EventType.CATEGORY_CLICK: "category_clicks",
    EventType.CATEGORY_ACCESS: "category_accesses",
}


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def event_out(event: StoreEvent) -> StoreEventOut:
    return StoreEventOut(
        id=event.id,
        store_id=event.store_id,
        event_type=event.event_type,
        entity_id=event.entity_id,
        entity_type=event.entity_type,
        metadata=event.metadata_json,
        created_at=event.created_at,
    )


async def user_store(session: AsyncSession, user: User) -> Optional[uuid.UUID]:
    """The store a user records private events against: their oldest membership."""

    memberships = await user_memberships(session, user.id)
    return memberships[0].store_id if memberships else None


async def require_user_store(session: AsyncSession, user: User) -> uuid.UUID:
    store_id = await user_store(session, user)
    if store_id is None:
        raise IllegalUserArgument("User has no store")
    return store_id


async def require_store_access(session: AsyncSession, store_id: uuid.UUID, user: User) -> None:
    memberships = await user_memberships(session, user.id)
    if all(m.store_id != store_id for m in memberships):
        raise InsufficientPermission("You do not have access to this store's metrics")


async def create_event(
    session: AsyncSession, store_id: uuid.UUID, payload: StoreEventCreate
) -> StoreEventOut:
    store = await get_store(session, store_id)

    metadata = payload.metadata
    if metadata is not None and len(metadata) > MAX_METADATA_LENGTH:
        metadata = metadata[:MAX_METADATA_LENGTH]

    event = StoreEvent(
        store_id=store.id,
        event_type=payload.event_type,
        entity_id=payload.entity_id,
        entity_type=payload.entity_type,
        metadata_json=metadata,
    )
    session.add(event)
    await session.flush()
    await update_daily_metrics(session, store.id, event.created_at)
    await session.commit()
    logger.bind(store_id=str(store.id), event_type=event.event_type.value).debug("store_event_recorded")
    return event_out(event)


async def _count_by_type(
    session: AsyncSession, store_id: uuid.UUID, start: datetime, end: datetime
) -> Dict[EventType, int]:
    result = await session.execute(
        select(StoreEvent.event_type, func.count())
        .where(
            StoreEvent.store_id == store_id,
            StoreEvent.created_at >= start,
            StoreEvent.created_at < end,
        )
        .group_by(StoreEvent.event_type)
    )
    return {event_type: count for event_type, count in result.all()}


async def _top_entities(
    session: AsyncSession,
    store_id: uuid.UUID,
    event_type: EventType,
    start: datetime,
    end: datetime,
    limit: int = TOP_LIMIT,
) -> List[Tuple[uuid.UUID, int]]:
    count = func.count().label("total")
    result = await session.execute(
        select(StoreEvent.entity_id, count)
        .where(
            StoreEvent.store_id == store_id,
            StoreEvent.event_type == event_type,
            StoreEvent.entity_id.is_not(None),
            StoreEvent.created_at >= start,
            StoreEvent.created_at < end,
        )
        .group_by(StoreEvent.entity_id)
        .order_by(count.desc(), StoreEvent.entity_id)
        .limit(limit)
    )
    return [(entity_id, total) for entity_id, total in result.all()]


def _ranking_json(**rankings: List[Tuple[uuid.UUID, int]]) -> str:
    return json.dumps(
        {
            name: [{"id": str(entity_id), "count": total} for entity_id, total in rows]
            for name, rows in rankings.items()
        }
    )


async def _rollup_row(
    session: AsyncSession, store_id: uuid.UUID, start: datetime, lock: bool = False
) -> Optional[StoreMetrics]:
    query = select(StoreMetrics).where(StoreMetrics.store_id == store_id, StoreMetrics.date == start)
    if lock:
        query = query.with_for_update()
    return await session.scalar(query)


async def _get_or_create_rollup(
    session: AsyncSession, store_id: uuid.UUID, start: datetime
) -> StoreMetrics:
    row = await _rollup_row(session, store_id, start)
    if row is not None:
        return row
    try:
        async with session.begin_nested():
            row = StoreMetrics(store_id=store_id, date=start)
            session.add(row)
    except IntegrityError:
        # another transaction created the day first; the locking read sees its commit
        logger.bind(store_id=str(store_id), date=start.isoformat()).info("store_metrics_insert_raced")
        row = await _rollup_row(session, store_id, start, lock=True)
        if row is None:
            raise
    return row


async def update_daily_metrics(
    session: AsyncSession, store_id: uuid.UUID, moment: Optional[datetime] = None
) -> StoreMetrics:
    """Recount the UTC day containing ``moment`` into its rollup row.

    The row is created inside a savepoint, so a concurrent insert of the same
    day only rolls back the savepoint and the existing row is updated instead.
    The caller owns the transaction.
    """

    start, end = day_bounds(moment or utcnow())
    row = await _get_or_create_rollup(session, store_id, start)

    counts = await _count_by_type(session, store_id, start, end)
    for event_type, column in _COUNTERS.items():
        setattr(row, column, counts.get(event_type, 0))

    row.top_products = _ranking_json(
        clicks=await _top_entities(session, store_id, EventType.PRODUCT_CLICK, start, end),
        conversions=await _top_entities(session, store_id, EventType.PRODUCT_CONVERSION, start, end),
    )
    row.top_categories = _ranking_json(
        clicks=await _top_entities(session, store_id, EventType.CATEGORY_CLICK, start, end),
        accesses=await _top_entities(session, store_id, EventType.CATEGORY_ACCESS, start, end),
    )
    await session.flush()
    return row


async def _titles(session: AsyncSession, column, model, ids: List[uuid.UUID]) -> Dict[uuid.UUID, str]:
    if not ids:
        return {}
    result = await session.execute(select(model.id, column).where(model.id.in_(ids)))
    return {entity_id: title for entity_id, title in result.all()}


async def _entity_counts(
    session: AsyncSession,
    store_id: uuid.UUID,
    event_type: EventType,
    ids: List[uuid.UUID],
    start: datetime,
    end: datetime,
) -> Dict[uuid.UUID, int]:
    if not ids:
        return {}
    result = await session.execute(
        select(StoreEvent.entity_id, func.count())
        .where(
            StoreEvent.store_id == store_id,
            StoreEvent.event_type == event_type,
            StoreEvent.entity_id.in_(ids),
            StoreEvent.created_at >= start,
            StoreEvent.created_at < end,
        )
        .group_by(StoreEvent.entity_id)
    )
    return {entity_id: total for entity_id, total in result.all()}


def conversion_rate(clicks: int, conversions: int) -> float:
    """Conversions per click as a percentage, rounded to two places."""

    if clicks <= 0:
        return 0.0
    return round(conversions * 100.0 / clicks, 2)


async def _product_rankings(
    session: AsyncSession, store_id: uuid.UUID, start: datetime, end: datetime
) -> Tuple[List[ProductMetricsOut], List[ProductMetricsOut]]:
    by_clicks = await _top_entities(session, store_id, EventType.PRODUCT_CLICK, start, end)
    by_conversions = await _top_entities(session, store_id, EventType.PRODUCT_CONVERSION, start, end)
    ids = list({pid for pid, _ in by_clicks} | {pid for pid, _ in by_conversions})

    titles = await _titles(session, Product.title, Product, ids)
    clicks = await _entity_counts(session, store_id, EventType.PRODUCT_CLICK, ids, start, end)
    conversions = await _entity_counts(session, store_id, EventType.PRODUCT_CONVERSION, ids, start, end)

    def build(product_id: uuid.UUID) -> ProductMetricsOut:
        c, v = clicks.get(product_id, 0), conversions.get(product_id, 0)
        return ProductMetricsOut(
            product_id=str(product_id),
            product_title=titles.get(product_id, PRODUCT_NOT_FOUND),
            clicks=c,
            conversions=v,
            conversion_rate=conversion_rate(c, v),
        )

    return [build(pid) for pid, _ in by_clicks], [build(pid) for pid, _ in by_conversions]


async def _category_rankings(
    session: AsyncSession, store_id: uuid.UUID, start: datetime, end: datetime
) -> Tuple[List[CategoryMetricsOut], List[CategoryMetricsOut]]:
    by_clicks = await _top_entities(session, store_id, EventType.CATEGORY_CLICK, start, end)
    by_accesses = await _top_entities(session, store_id, EventType.CATEGORY_ACCESS, start, end)
    ids = list({cid for cid, _ in by_clicks} | {cid for cid, _ in by_accesses})

    names = await _titles(session, Category.name, Category, ids)
    clicks = await _entity_counts(session, store_id, EventType.CATEGORY_CLICK, ids, start, end)
    accesses = await _entity_counts(session, store_id, EventType.CATEGORY_ACCESS, ids, start, end)

    def build(category_id: uuid.UUID) -> CategoryMetricsOut:
        return CategoryMetricsOut(
            category_id=str(category_id),
            category_name=names.get(category_id, CATEGORY_NOT_FOUND),
            clicks=clicks.get(category_id, 0),
            accesses=accesses.get(category_id, 0),
        )

    return [build(cid) for cid, _ in by_clicks], [build(cid) for cid, _ in by_accesses]


async def get_store_metrics(
    session: AsyncSession, store_id: uuid.UUID, days: int = 30, now: Optional[datetime] = None
) -> StoreMetricsOut:
    store = await session.get(Store, store_id)
    if store is None:
        raise ObjectNotFound(f"Store {store_id} not found")

    end = now or utcnow()
    start = end - timedelta(days=days)
    first_day, _ = day_bounds(start)

    rows = (
        await session.execute(
            select(StoreMetrics)
            .where(
                StoreMetrics.store_id == store.id,
                StoreMetrics.date >= first_day,
                StoreMetrics.date <= end,
            )
            .order_by(StoreMetrics.date)
        )
    ).scalars().all()

    daily = [
        DailyMetricsOut(
            date=row.date,
            accesses=row.daily_accesses,
            product_clicks=row.product_clicks,
            product_conversions=row.product_conversions,
            category_clicks=row.category_clicks,
            category_accesses=row.category_accesses,
        )
        for row in rows
    ]
    products_by_clicks, products_by_conversions = await _product_rankings(session, store.id, start, end)
    categories_by_clicks, categories_by_accesses = await _category_rankings(session, store.id, start, end)

    return StoreMetricsOut(
        store_id=store.id,
        store_name=store.name,
        start_date=start,
        end_date=end,
        total_accesses=sum(d.accesses for d in daily),
        total_product_clicks=sum(d.product_clicks for d in daily),
        total_product_conversions=sum(d.product_conversions for d in daily),
        total_category_clicks=sum(d.category_clicks for d in daily),
        total_category_accesses=sum(d.category_accesses for d in daily),
        daily_metrics=daily,
        top_products_by_clicks=products_by_clicks,
        top_products_by_conversions=products_by_conversions,
        top_categories_by_clicks=categories_by_clicks,
        top_categories_by_accesses=categories_by_accesses,
    )
