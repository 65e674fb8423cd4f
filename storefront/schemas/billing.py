"""Billing request/response models and the AbacatePay wire formats.

AbacatePay speaks camelCase JSON, so the provider-facing models use a camelCase
alias generator while the API's own models stay snake_case.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.models.enums import PayingPlan, PlanDuration


class BillingCreate(BaseModel):
    paying_plan: PayingPlan
    plan_duration: PlanDuration
    tax_id: Optional[str] = Field(default=None, max_length=32)


class BillingOut(BaseModel):
    id: uuid.UUID
    payment_url: Optional[str] = None
    price: int
    paying_plan: PayingPlan
    plan_duration: PlanDuration
    expires_at: Optional[datetime] = None
    external_id: Optional[str] = None


class ActivePlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    paying_plan: PayingPlan
    plan_duration: PlanDuration
    price: int
    paid_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class WebhookAck(BaseModel):
    received: bool = True


# Provider wire formats


class _ProviderModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AbacateProduct(_ProviderModel):
    external_id: str
    name: str
    description: str
    quantity: int = 1
    price: int


class AbacateCustomer(_ProviderModel):
    name: str
    cellphone: Optional[str] = None
    email: str
    tax_id: Optional[str] = None


class AbacateBillingCreate(_ProviderModel):
    frequency: str = "ONE_TIME"
    methods: List[str] = Field(default_factory=lambda: ["PIX"])
    products: List[AbacateProduct]
    return_url: str
    completion_url: str
    customer: AbacateCustomer
    allow_coupons: bool = True
    coupons: List[str] = Field(default_factory=list)


class AbacateBillingData(_ProviderModel):
    id: str
    url: str
    amount: Optional[int] = None
    status: Optional[str] = None
    dev_mode: Optional[bool] = None


class AbacateBillingResponse(_ProviderModel):
    data: Optional[AbacateBillingData] = None
    error: Optional[Any] = None


class WebhookProduct(_ProviderModel):
    external_id: Optional[str] = None
    id: Optional[str] = None
    quantity: Optional[int] = None


class WebhookPayment(_ProviderModel):
    amount: Optional[int] = None
    fee: Optional[int] = None
    method: Optional[str] = None


class WebhookBilling(_ProviderModel):
    amount: Optional[int] = None
    coupons_used: List[str] = Field(default_factory=list)
    customer: Optional[dict[str, Any]] = None
    frequency: Optional[str] = None
    id: Optional[str] = None
    kind: List[str] = Field(default_factory=list)
    paid_amount: Optional[int] = None
    products: List[WebhookProduct] = Field(default_factory=list)
    status: Optional[str] = None


class WebhookData(_ProviderModel):
    payment: Optional[WebhookPayment] = None
    billing: Optional[WebhookBilling] = None


class WebhookPayload(_ProviderModel):
    id: Optional[str] = None
    data: WebhookData
    dev_mode: Optional[bool] = None
    event: str
