import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.models.base import Base, UUIDPrimaryKeyMixin, utcnow
from storefront.models.enums import PayingPlan, PlanDuration
from storefront.models.store_user import StoreUser


class Billing(UUIDPrimaryKeyMixin, Base):
    """One purchase of a paid plan period, tracked through the payment provider.

    ``paid_at`` is written once, by the webhook, when the provider reports the
    charge as paid. A billing counts as the store's active plan while it is
    paid and not yet expired.
    """

    __tablename__ = "billings"

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_users.id"), nullable=False
    )
    paying_plan: Mapped[PayingPlan] = mapped_column(
        Enum(PayingPlan, native_enum=False, length=16), nullable=False
    )
    plan_duration: Mapped[PlanDuration] = mapped_column(
        Enum(PlanDuration, native_enum=False, length=16), nullable=False
    )
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    tax_id: Mapped[str] = mapped_column(String(32), nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    payment_url: Mapped[Optional[str]] = mapped_column(String(1024))
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    coupons_used: Mapped[Optional[str]] = mapped_column(Text)  # JSON list

    payer: Mapped[StoreUser] = relationship(lazy="selectin")
