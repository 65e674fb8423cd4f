import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, UUIDPrimaryKeyMixin, utcnow
from storefront.models.enums import EntityType, EventType


class StoreEvent(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "store_events"
    __table_args__ = (
        Index("idx_store_events_store_created", "store_id", "created_at"),
        Index("idx_store_events_store_type", "store_id", "event_type"),
        Index("idx_store_events_entity", "entity_type", "entity_id"),
    )

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[EventType] = mapped_column(
        Enum(EventType, native_enum=False, length=32), nullable=False
    )
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    entity_type: Mapped[Optional[EntityType]] = mapped_column(
        Enum(EntityType, native_enum=False, length=16)
    )
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", String(1000))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
