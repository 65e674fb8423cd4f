import json
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import add_member, auth_headers, make_store, make_user
from storefront.core.errors import AuthenticationFailed, ExternalServiceError
from storefront.models import Billing, StoreUser
from storefront.models.base import utcnow
from storefront.models.enums import PayingPlan, PlanDuration, UserRole
from storefront.schemas.billing import AbacateBillingData, WebhookPayload
from storefront.services import abacatepay, billing

pytestmark = pytest.mark.anyio

WEBHOOK_URL = "/api/v1/billing/webhook?webhookSecret=webhook-secret"


def test_prices():
    assert billing.calculate_price(PayingPlan.BASIC, PlanDuration.MONTHLY) == 2900
    assert billing.calculate_price(PayingPlan.PRO, PlanDuration.MONTHLY) == 4900
    assert billing.calculate_price(PayingPlan.BASIC, PlanDuration.YEARLY) == 27840
    assert billing.calculate_price(PayingPlan.PRO, PlanDuration.YEARLY) == 47040


def test_signature_round_trip_and_tampering():
    body = b'{"event":"billing.paid"}'
    signature = billing.sign_body(body)
    assert billing.verify_signature(body, signature)
    assert not billing.verify_signature(body + b" ", signature)
    assert not billing.verify_signature(body, "%%% not base64 %%%")


def test_authenticate_webhook_checks_secret_then_signature():
    body = b"{}"
    with pytest.raises(AuthenticationFailed):
        billing.authenticate_webhook("wrong", billing.sign_body(body), body)
    with pytest.raises(AuthenticationFailed):
        billing.authenticate_webhook("webhook-secret", None, body)
    billing.authenticate_webhook("webhook-secret", billing.sign_body(body), body)


class FakeProvider:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests = []

    async def __call__(self, body, **kwargs):
        self.requests.append(body)
        if self.fail:
            raise ExternalServiceError("Payment provider returned 500: boom")
        return AbacateBillingData(id="bill_123", url="https://pay.test/bill_123", status="PENDING")


async def test_create_billing_calls_provider(client, session, monkeypatch):
    provider = FakeProvider()
    monkeypatch.setattr(abacatepay, "create_billing", provider)
    owner = await make_user(session, name="Dona Maria")
    store = await make_store(session, owner, name="Empada Boa", phone_number="81999999999")

    resp = await client.post(
        f"/api/v1/billing/{store.id}",
        json={"paying_plan": "BASIC", "plan_duration": "YEARLY"},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["price"] == 27840
    assert body["external_id"] == "bill_123"
    assert body["payment_url"] == "https://pay.test/bill_123"

    sent = provider.requests[0].model_dump(by_alias=True)
    assert sent["frequency"] == "ONE_TIME"
    assert sent["methods"] == ["PIX"]
    assert sent["products"][0]["externalId"] == body["id"]
    assert sent["products"][0]["name"] == "Plan BASIC - YEARLY for Empada Boa"
    assert sent["customer"]["taxId"] == "12345678901"
    assert sent["customer"]["cellphone"] == "81999999999"

    row = await session.get(Billing, uuid.UUID(body["id"]))
    assert row.paid_at is None
    assert (row.expires_at - row.created_at).days == 365


async def test_provider_failure_rolls_back(client, session, monkeypatch):
    monkeypatch.setattr(abacatepay, "create_billing", FakeProvider(fail=True))
    owner = await make_user(session)
    store = await make_store(session, owner)

    resp = await client.post(
        f"/api/v1/billing/{store.id}",
        json={"paying_plan": "PRO", "plan_duration": "MONTHLY"},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 502
    assert "boom" in resp.json()["message"]
    assert (await session.execute(select(Billing))).scalars().all() == []


async def test_billing_preconditions(client, session, monkeypatch):
    monkeypatch.setattr(abacatepay, "create_billing", FakeProvider())
    owner = await make_user(session)
    outsider = await make_user(session)
    store = await make_store(session, owner)
    url = f"/api/v1/billing/{store.id}"

    free = await client.post(
        url, json={"paying_plan": "FREE", "plan_duration": "MONTHLY"}, headers=auth_headers(owner)
    )
    assert free.status_code == 400

    stranger = await client.post(
        url, json={"paying_plan": "BASIC", "plan_duration": "MONTHLY"}, headers=auth_headers(outsider)
    )
    assert stranger.status_code == 403

    payer = await session.scalar(select(StoreUser).where(StoreUser.store_id == store.id))
    now = utcnow()
    session.add(
        Billing(
            store_id=store.id,
            payer_id=payer.id,
            paying_plan=PayingPlan.BASIC,
            plan_duration=PlanDuration.MONTHLY,
            price=2900,
            tax_id="1",
            paid_at=now,
            expires_at=now + timedelta(days=10),
        )
    )
    await session.commit()
    again = await client.post(
        url, json={"paying_plan": "PRO", "plan_duration": "MONTHLY"}, headers=auth_headers(owner)
    )
    assert again.status_code == 400
    assert again.json()["message"] == "Store already has an active plan"


async def test_expired_plan_is_not_active(session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    payer = await session.scalar(select(StoreUser).where(StoreUser.store_id == store.id))
    now = utcnow()
    session.add(
        Billing(
            store_id=store.id,
            payer_id=payer.id,
            paying_plan=PayingPlan.PRO,
            plan_duration=PlanDuration.MONTHLY,
            price=4900,
            tax_id="1",
            paid_at=now - timedelta(days=40),
            expires_at=now - timedelta(days=10),
        )
    )
    await session.commit()
    assert await billing.get_active_billing(session, store.id) is None


async def _pending_billing(session):
    owner = await make_user(session)
    store = await make_store(session, owner)
    payer = await session.scalar(select(StoreUser).where(StoreUser.store_id == store.id))
    row = Billing(
        store_id=store.id,
        payer_id=payer.id,
        paying_plan=PayingPlan.BASIC,
        plan_duration=PlanDuration.MONTHLY,
        price=2900,
        tax_id="1",
        expires_at=utcnow() + timedelta(days=30),
        external_id="bill_abc",
    )
    session.add(row)
    await session.commit()
    return owner, store, row


def _paid_event(billing_id, coupons=("RRFULLSTACKDEVS",)) -> dict:
    return {
        "id": "log_1",
        "event": "billing.paid",
        "devMode": True,
        "data": {
            "payment": {"amount": 2900, "fee": 80, "method": "PIX"},
            "billing": {
                "id": "bill_abc",
                "status": "PAID",
                "paidAmount": 2900,
                "couponsUsed": list(coupons),
                "products": [{"externalId": str(billing_id), "id": "prod_1", "quantity": 1}],
            },
        },
    }


async def _post_webhook(client, payload: dict, url: str = WEBHOOK_URL):
    raw = json.dumps(payload).encode("utf-8")
    return await client.post(
        url,
        content=raw,
        headers={"Content-Type": "application/json", "X-Webhook-Signature": billing.sign_body(raw)},
    )


async def test_webhook_marks_billing_paid_once(client, session):
    owner, store, row = await _pending_billing(session)

    first = await _post_webhook(client, _paid_event(row.id))
    assert first.status_code == 200
    assert first.json() == {"received": True}

    paid = await session.get(Billing, row.id, populate_existing=True)
    assert paid.paid_at is not None
    assert json.loads(paid.coupons_used) == ["RRFULLSTACKDEVS"]
    paid_at = paid.paid_at

    second = await _post_webhook(client, _paid_event(row.id, coupons=()))
    assert second.status_code == 200
    again = await session.get(Billing, row.id, populate_existing=True)
    assert again.paid_at == paid_at
    assert json.loads(again.coupons_used) == ["RRFULLSTACKDEVS"]

    active = await client.get(f"/api/v1/billing/{store.id}/active", headers=auth_headers(owner))
    assert active.json()["paying_plan"] == "BASIC"


async def test_webhook_rejects_bad_credentials(client, session):
    _, _, row = await _pending_billing(session)
    payload = _paid_event(row.id)

    wrong_secret = await _post_webhook(client, payload, "/api/v1/billing/webhook?webhookSecret=nope")
    assert wrong_secret.status_code == 401

    raw = json.dumps(payload).encode()
    unsigned = await client.post(WEBHOOK_URL, content=raw, headers={"Content-Type": "application/json"})
    assert unsigned.status_code == 401

    forged = await client.post(
        WEBHOOK_URL,
        content=raw,
        headers={"X-Webhook-Signature": billing.sign_body(b"something else")},
    )
    assert forged.status_code == 401

    assert (await session.get(Billing, row.id, populate_existing=True)).paid_at is None


async def test_webhook_payload_errors(client, session):
    _, _, row = await _pending_billing(session)

    ignored = await _post_webhook(client, {"event": "billing.created", "data": {}})
    assert ignored.status_code == 200

    no_products = _paid_event(row.id)
    no_products["data"]["billing"]["products"] = []
    assert (await _post_webhook(client, no_products)).status_code == 400

    bad_id = _paid_event("not-a-uuid")
    assert (await _post_webhook(client, bad_id)).status_code == 400

    unknown = _paid_event(uuid.uuid4())
    assert (await _post_webhook(client, unknown)).status_code == 404

    raw = b"{not json"
    malformed = await client.post(
        WEBHOOK_URL, content=raw, headers={"X-Webhook-Signature": billing.sign_body(raw)}
    )
    assert malformed.status_code == 400


async def test_active_plan_requires_manager(client, session):
    owner = await make_user(session)
    employee = await make_user(session)
    store = await make_store(session, owner)
    await add_member(session, store, employee, UserRole.EMPLOYEE)

    assert (
        await client.get(f"/api/v1/billing/{store.id}/active", headers=auth_headers(employee))
    ).status_code == 403
    resp = await client.get(f"/api/v1/billing/{store.id}/active", headers=auth_headers(owner))
    assert resp.status_code == 200
    assert resp.json() is None


async def test_process_webhook_ignores_pending_status(session):
    _, _, row = await _pending_billing(session)
    event = _paid_event(row.id)
    event["data"]["billing"]["status"] = "PENDING"
    await billing.process_webhook(session, WebhookPayload.model_validate(event))
    assert (await session.get(Billing, row.id)).paid_at is None
