import json
import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from conftest import auth_headers, make_store, make_user
from storefront.models import Category, Product, StoreEvent, StoreMetrics
from storefront.models.base import utcnow
from storefront.models.enums import EntityType, EventType
from storefront.schemas.metrics import StoreEventCreate
from storefront.services import metrics

pytestmark = pytest.mark.anyio


def _event(store_id, event_type, created_at):
    return StoreEvent(store_id=store_id, event_type=event_type, created_at=created_at)


async def test_rollup_recounts_into_one_row_per_day(session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    for _ in range(3):
        await metrics.create_event(session, store.id, StoreEventCreate(event_type=EventType.STORE_ACCESS))
    product_id = uuid.uuid4()
    await metrics.create_event(
        session,
        store.id,
        StoreEventCreate(event_type=EventType.PRODUCT_CLICK, entity_id=product_id, entity_type=EntityType.PRODUCT),
    )

    rows = (await session.execute(select(StoreMetrics))).scalars().all()
    assert len(rows) == 1
    row = rows[0]
    assert row.daily_accesses == 3
    assert row.product_clicks == 1
    assert row.date.hour == 0 and row.date.minute == 0
    assert json.loads(row.top_products) == {
        "clicks": [{"id": str(product_id), "count": 1}],
        "conversions": [],
    }
    assert json.loads(row.top_categories) == {"clicks": [], "accesses": []}


async def test_rollup_counts_only_its_own_day(session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    day = datetime(2024, 3, 10, 15, 30)
    session.add_all(
        [
            _event(store.id, EventType.STORE_ACCESS, created_at=day),
            _event(store.id, EventType.STORE_ACCESS, created_at=day.replace(hour=0, minute=0)),
            _event(store.id, EventType.STORE_ACCESS, created_at=day + timedelta(days=1)),
            _event(store.id, EventType.STORE_ACCESS, created_at=day - timedelta(days=1)),
        ]
    )
    await session.commit()

    row = await metrics.update_daily_metrics(session, store.id, day)
    await session.commit()
    assert row.date == datetime(2024, 3, 10)
    assert row.daily_accesses == 2

    await metrics.update_daily_metrics(session, store.id, day)
    await session.commit()
    count = await session.scalar(select(func.count()).select_from(StoreMetrics))
    assert count == 1


async def test_metadata_is_truncated(session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    out = await metrics.create_event(
        session, store.id, StoreEventCreate(event_type=EventType.STORE_ACCESS, metadata="x" * 1500)
    )
    assert len(out.metadata) == 1000


async def test_event_for_unknown_store_is_404(client):
    resp = await client.post(f"/api/v1/metrics/events/store-access/{uuid.uuid4()}")
    assert resp.status_code == 404


async def test_event_for_deleted_store_is_rejected(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    store.soft_delete()
    await session.commit()

    resp = await client.post(f"/api/v1/metrics/events/store-access/{store.id}")
    assert resp.status_code == 400
    assert await session.scalar(select(func.count()).select_from(StoreEvent)) == 0
    assert await session.scalar(select(func.count()).select_from(StoreMetrics)) == 0


async def test_rollup_reuses_row_inserted_by_concurrent_event(session, monkeypatch):
    owner = await make_user(session)
    store = await make_store(session, owner)
    start, _ = metrics.day_bounds(utcnow())
    session.add(StoreMetrics(store_id=store.id, date=start, daily_accesses=7))
    await session.commit()

    find_row = metrics._rollup_row
    lookups = []

    async def hidden_until_locked(session, store_id, start, lock=False):
        lookups.append(lock)
        return await find_row(session, store_id, start, lock) if lock else None

    monkeypatch.setattr(metrics, "_rollup_row", hidden_until_locked)
    out = await metrics.create_event(session, store.id, StoreEventCreate(event_type=EventType.STORE_ACCESS))

    assert lookups == [False, True]
    rows = (await session.execute(select(StoreMetrics))).scalars().all()
    assert len(rows) == 1
    assert rows[0].daily_accesses == 1
    assert await session.get(StoreEvent, out.id) is not None


async def test_public_tracking_and_report(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    category = Category(name="Roupas", store_id=store.id)
    session.add(category)
    await session.flush()
    shirt = Product(title="Camiseta", price=5000, store_id=store.id, category_id=category.id)
    session.add(shirt)
    await session.commit()
    ghost = uuid.uuid4()

    headers = {"User-Agent": "pytest-browser"}
    access = await client.post(f"/api/v1/metrics/events/store-access/{store.id}", headers=headers)
    assert access.status_code == 201
    assert json.loads(access.json()["metadata"]) == {"userAgent": "pytest-browser"}

    for _ in range(4):
        await client.post(f"/api/v1/metrics/events/product-click/{store.id}/{shirt.id}")
    await client.post(f"/api/v1/metrics/events/product-click/{store.id}/{ghost}")
    conversion = await client.post(f"/api/v1/metrics/events/product-conversion/{store.id}/{shirt.id}")
    assert json.loads(conversion.json()["metadata"]) == {"type": "conversion"}
    await client.post(f"/api/v1/metrics/events/category-click/{store.id}/{category.id}")
    private = await client.post(
        f"/api/v1/metrics/events/category-access/{category.id}", headers=auth_headers(owner)
    )
    assert private.json()["store_id"] == str(store.id)

    report = await client.get(
        f"/api/v1/metrics/store/{store.id}", params={"days": 7}, headers=auth_headers(owner)
    )
    assert report.status_code == 200
    body = report.json()
    assert body["store_name"] == store.name
    assert body["total_accesses"] == 1
    assert body["total_product_clicks"] == 5
    assert body["total_product_conversions"] == 1
    assert body["total_category_clicks"] == 1
    assert body["total_category_accesses"] == 1
    assert len(body["daily_metrics"]) == 1

    top = body["top_products_by_clicks"]
    assert [p["product_title"] for p in top] == ["Camiseta", "Product not found"]
    assert top[0]["clicks"] == 4 and top[0]["conversions"] == 1
    assert top[0]["conversion_rate"] == 25.0
    assert body["top_products_by_conversions"][0]["product_id"] == str(shirt.id)
    assert body["top_categories_by_clicks"][0]["category_name"] == "Roupas"
    assert body["top_categories_by_accesses"][0]["accesses"] == 1


async def test_conversion_body_becomes_metadata(client, session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    resp = await client.post(
        f"/api/v1/metrics/events/product-conversion/{store.id}/{uuid.uuid4()}",
        json={"type": "whatsapp", "quantity": 2},
    )
    assert json.loads(resp.json()["metadata"]) == {"type": "whatsapp", "quantity": 2}


async def test_report_access_rules(client, session):
    owner = await make_user(session)
    outsider = await make_user(session)
    store = await make_store(session, owner)
    url = f"/api/v1/metrics/store/{store.id}"

    assert (await client.get(url, headers=auth_headers(outsider))).status_code == 403
    assert (await client.get(url, params={"days": 0}, headers=auth_headers(owner))).status_code == 400
    assert (await client.get(url, params={"days": 366}, headers=auth_headers(owner))).status_code == 400

    empty = await client.get(f"{url}/daily", headers=auth_headers(owner))
    assert empty.status_code == 200
    assert empty.json()["total_accesses"] == 0
    assert empty.json()["daily_metrics"] == []


async def test_private_event_requires_a_store(client, session):
    lonely = await make_user(session)
    resp = await client.post(
        "/api/v1/metrics/events",
        json={"event_type": "STORE_ACCESS"},
        headers=auth_headers(lonely),
    )
    assert resp.status_code == 400


def test_conversion_rate():
    assert metrics.conversion_rate(0, 3) == 0.0
    assert metrics.conversion_rate(3, 1) == 33.33
