import uuid
from typing import Optional

from sqlalchemy import Boolean, Enum, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin
from storefront.models.enums import BackgroundType, RoundedLevel, ThemeMode


class Address(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "addresses"

    street: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(120))
    state: Mapped[Optional[str]] = mapped_column(String(60))
    zip_code: Mapped[Optional[str]] = mapped_column(String(20))


class Store(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "stores"

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("addresses.id", ondelete="SET NULL")
    )
    phone_number: Mapped[Optional[str]] = mapped_column(String(40))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    cnpj: Mapped[Optional[str]] = mapped_column(String(18))
    instagram: Mapped[Optional[str]] = mapped_column(String(255))
    facebook: Mapped[Optional[str]] = mapped_column(String(255))

    # Object-storage keys; responses expose presigned URLs instead.
    logo_url: Mapped[Optional[str]] = mapped_column(String(512))
    banner_desktop_url: Mapped[Optional[str]] = mapped_column(String(512))
    banner_tablet_url: Mapped[Optional[str]] = mapped_column(String(512))
    banner_mobile_url: Mapped[Optional[str]] = mapped_column(String(512))

    primary_color: Mapped[Optional[str]] = mapped_column(String(32))
    theme_mode: Mapped[Optional[ThemeMode]] = mapped_column(
        Enum(ThemeMode, native_enum=False, length=16)
    )
    primary_font: Mapped[str] = mapped_column(String(80), default="Poppins")
    secondary_font: Mapped[str] = mapped_column(String(80), default="Inter")
    rounded_level: Mapped[Optional[RoundedLevel]] = mapped_column(
        Enum(RoundedLevel, native_enum=False, length=16)
    )
    product_card_shadow: Mapped[Optional[str]] = mapped_column(String(64))

    background_type: Mapped[Optional[BackgroundType]] = mapped_column(
        Enum(BackgroundType, native_enum=False, length=32)
    )
    background_enabled: Mapped[Optional[bool]] = mapped_column(Boolean)
    background_opacity: Mapped[Optional[float]] = mapped_column(Float)
    background_color: Mapped[Optional[str]] = mapped_column(String(32))
    background_config_json: Mapped[Optional[str]] = mapped_column(String(2000))

    address: Mapped[Optional[Address]] = relationship(
        lazy="selectin", cascade="all, delete-orphan", single_parent=True
    )
