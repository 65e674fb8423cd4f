import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import remote_addr
from storefront.core.db import get_session
from storefront.core.deps import get_current_user
from storefront.core.errors import IllegalUserArgument
from storefront.models.user import User
from storefront.schemas.billing import (
    ActivePlanOut,
    BillingCreate,
    BillingOut,
    WebhookAck,
    WebhookPayload,
)
from storefront.services import billing
from storefront.services.permissions import get_store, require_manager

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post("/webhook", response_model=WebhookAck)
async def abacatepay_webhook(
    request: Request,
    webhook_secret: Optional[str] = Query(default=None, alias="webhookSecret"),
    signature: Optional[str] = Header(default=None, alias="X-Webhook-Signature"),
    session: AsyncSession = Depends(get_session),
):
    raw_body = await request.body()
    billing.authenticate_webhook(webhook_secret, signature, raw_body)
    try:
        payload = WebhookPayload.model_validate_json(raw_body)
    except ValidationError as exc:
        raise IllegalUserArgument(f"Invalid webhook payload: {exc.error_count()} error(s)")
    await billing.process_webhook(session, payload)
    return WebhookAck()


@router.post("/{store_id}", response_model=BillingOut, status_code=status.HTTP_201_CREATED)
async def create_billing(
    store_id: uuid.UUID,
    payload: BillingCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await billing.create_billing(session, store_id, payload, user, remote_addr(request))


@router.get("/{store_id}/active", response_model=Optional[ActivePlanOut])
async def get_active_plan(
    store_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)
    active = await billing.get_active_billing(session, store.id)
    return ActivePlanOut.model_validate(active) if active else None
