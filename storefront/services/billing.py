"""Paid plans: charge creation through AbacatePay and webhook confirmation."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import math
import uuid
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import log_audit
from storefront.core.config import settings
from storefront.core.errors import (
    AuthenticationFailed,
    ExternalServiceError,
    IllegalUserArgument,
    InsufficientPermission,
    ObjectNotFound,
)
from storefront.models.base import utcnow
from storefront.models.billing import Billing
from storefront.models.enums import PayingPlan, PlanDuration
from storefront.models.user import User
from storefront.schemas.billing import (
    AbacateBillingCreate,
    AbacateCustomer,
    AbacateProduct,
    BillingCreate,
    BillingOut,
    WebhookPayload,
)
from storefront.services import abacatepay
from storefront.services.permissions import get_membership, get_store

# Public key AbacatePay signs webhook bodies with (HMAC-SHA256, base64).
ABACATEPAY_PUBLIC_KEY = (
    "t9dXRhHHo3yDEj5pVDYz0frf7q6bMKyMRmxxCPIPp3RCplBfXRxqlC6ZpiWmOqj4L63qEaeUOtrCI8P0VMUgo6iIga2ri9ogaHFs0WIIywSMg0q7RmBfybe1E5XJcfC4IW3alNqym0tXoAKkzvfEjZxV6bE0oG2zJrNNYmUCKZyV0KZ3JS8Votf9EAWWYdiDkMkpbMdPggfh1EqHlVkMiTady6jOR3hyzGEHrIz2Ret0xHKMbiqkr9HS1JhNHDX9"
)

YEARLY_DISCOUNT = 0.8
PAID_EVENT = "billing.paid"
PAID_STATUS = "PAID"


def calculate_price(plan: PayingPlan, duration: PlanDuration) -> int:
    """Price in cents; a yearly plan is twelve months with a 20% discount."""

    monthly = plan.monthly_price
    if duration is PlanDuration.YEARLY:
        return math.floor(monthly * 12 * YEARLY_DISCOUNT + 0.5)
    return monthly


async def get_active_billing(
    session: AsyncSession, store_id: uuid.UUID, now: Optional[datetime] = None
) -> Optional[Billing]:
    now = now or utcnow()
    return await session.scalar(
        select(Billing)
        .where(
            Billing.store_id == store_id,
            Billing.paid_at.is_not(None),
            or_(Billing.expires_at.is_(None), Billing.expires_at > now),
        )
        .order_by(Billing.paid_at.desc())
        .limit(1)
    )


async def create_billing(
    session: AsyncSession,
    store_id: uuid.UUID,
    payload: BillingCreate,
    user: User,
    remote_addr: Optional[str] = None,
) -> BillingOut:
    store = await get_store(session, store_id)
    payer = await get_membership(session, store.id, user.id)
    if payer is None:
        raise InsufficientPermission("You are not a member of this store")
    if payload.paying_plan is PayingPlan.FREE:
        raise IllegalUserArgument("The free plan does not require a payment")
    if await get_active_billing(session, store.id) is not None:
        raise IllegalUserArgument("Store already has an active plan")

    now = utcnow()
    price = calculate_price(payload.paying_plan, payload.plan_duration)
    tax_id = payload.tax_id or store.cnpj or user.cpf
    billing = Billing(
        store_id=store.id,
        payer_id=payer.id,
        paying_plan=payload.paying_plan,
        plan_duration=payload.plan_duration,
        price=price,
        tax_id=tax_id,
        created_at=now,
        expires_at=now + timedelta(days=payload.plan_duration.days),
    )
    session.add(billing)
    await session.flush()

    label = f"Plan {payload.paying_plan.value} - {payload.plan_duration.value} for {store.name}"
    request = AbacateBillingCreate(
        products=[
            AbacateProduct(
                external_id=str(billing.id),
                name=label,
                description=label,
                quantity=1,
                price=price,
            )
        ],
        return_url=settings.ABACATE_PAY_RETURN_URL,
        completion_url=settings.ABACATE_PAY_RETURN_URL,
        customer=AbacateCustomer(
            name=user.name,
            email=user.email,
            cellphone=store.phone_number,
            tax_id=tax_id,
        ),
        allow_coupons=True,
        coupons=list(settings.ABACATE_PAY_COUPONS),
    )
    try:
        data = await abacatepay.create_billing(request)
    except ExternalServiceError:
        await session.rollback()
        raise

    billing.external_id = data.id
    billing.payment_url = data.url
    await log_audit(
        session,
        user.id,
        "billing",
        billing.id,
        "CREATE",
        details={"plan": payload.paying_plan.value, "duration": payload.plan_duration.value, "price": price},
        remote_addr=remote_addr,
    )
    await session.commit()
    logger.bind(billing_id=str(billing.id), store_id=str(store.id), price=price).info(
        "billing_created"
    )
    return BillingOut(
        id=billing.id,
        payment_url=billing.payment_url,
        price=billing.price,
        paying_plan=billing.paying_plan,
        plan_duration=billing.plan_duration,
        expires_at=billing.expires_at,
        external_id=billing.external_id,
    )


def sign_body(raw_body: bytes) -> str:
    """Base64 HMAC-SHA256 of a body, as the provider computes it."""

    digest = hmac.new(ABACATEPAY_PUBLIC_KEY.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, signature: str) -> bool:
    """Check an ``X-Webhook-Signature`` header against the raw request body.

    Both sides are compared as decoded bytes in constant time; a signature
    that is not valid base64 never matches.
    """

    expected = base64.b64decode(sign_body(raw_body))
    try:
        received = base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError):
        return False
    return hmac.compare_digest(expected, received)


def authenticate_webhook(secret: Optional[str], signature: Optional[str], raw_body: bytes) -> None:
    configured = settings.ABACATE_PAY_WEBHOOK_SECRET
    if not configured or not secret or not hmac.compare_digest(secret.encode(), configured.encode()):
        logger.warning("webhook_invalid_secret")
        raise AuthenticationFailed("Invalid webhook secret")
    if not signature:
        logger.warning("webhook_missing_signature")
        raise AuthenticationFailed("Missing webhook signature")
    if not verify_signature(raw_body, signature):
        logger.warning("webhook_invalid_signature")
        raise AuthenticationFailed("Invalid webhook signature")


async def process_webhook(session: AsyncSession, payload: WebhookPayload) -> None:
    """Mark the referenced billing as paid; repeated deliveries are no-ops."""

    provider_billing = payload.data.billing
    status = provider_billing.status if provider_billing else None
    if payload.event != PAID_EVENT or status != PAID_STATUS:
        logger.bind(event=payload.event, status=status).info("webhook_ignored")
        return

    if not provider_billing.products:
        raise IllegalUserArgument("Webhook billing has no products")
    external_id = provider_billing.products[0].external_id
    if not external_id:
        raise IllegalUserArgument("Webhook product has no externalId")
    try:
        billing_id = uuid.UUID(external_id)
    except ValueError:
        raise IllegalUserArgument("Webhook externalId is not a valid id")

    billing = await session.get(Billing, billing_id)
    if billing is None:
        raise ObjectNotFound(f"Billing {billing_id} not found")
    if billing.paid_at is not None:
        logger.bind(billing_id=str(billing.id)).info("billing_already_paid")
        return

    billing.paid_at = utcnow()
    billing.coupons_used = json.dumps(provider_billing.coupons_used)
    await log_audit(
        session,
        None,
        "billing",
        billing.id,
        "PAID",
        details={"provider_billing_id": provider_billing.id, "amount": provider_billing.paid_amount},
    )
    await session.commit()
    logger.bind(billing_id=str(billing.id), store_id=str(billing.store_id)).info("billing_paid")
