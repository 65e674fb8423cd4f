import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.models.base import Base, SoftDeleteMixin, UUIDPrimaryKeyMixin, utcnow
from storefront.models.enums import UserRole
from storefront.models.store import Store
from storefront.models.user import User


class StoreUser(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    """Membership of a user in a store, with the role they hold there."""

    __tablename__ = "store_users"

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, length=16), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    store: Mapped[Store] = relationship(lazy="selectin")
    user: Mapped[User] = relationship(lazy="selectin")
