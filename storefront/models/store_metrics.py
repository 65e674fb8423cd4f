import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class StoreMetrics(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Daily rollup of a store's events; one row per store per UTC day."""

    __tablename__ = "store_metrics"
    __table_args__ = (UniqueConstraint("store_id", "date", name="uq_store_metrics_store_date"),)

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)  # start of day
    daily_accesses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_conversions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_accesses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    top_products: Mapped[Optional[str]] = mapped_column(String(2000))  # JSON
    top_categories: Mapped[Optional[str]] = mapped_column(String(2000))  # JSON
