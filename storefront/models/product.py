import uuid
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin
from storefront.models.category import Category


class Product(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "products"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    promotional_price: Mapped[Optional[int]] = mapped_column(Integer)
    show_promotion_badge: Mapped[Optional[bool]] = mapped_column(Boolean)
    description: Mapped[Optional[str]] = mapped_column(String(2000))
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="SET NULL"), index=True
    )
    display_order: Mapped[Optional[int]] = mapped_column(Integer)
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category: Mapped[Optional[Category]] = relationship(lazy="selectin")
    images: Mapped[List["ProductImage"]] = relationship(
        back_populates="product",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ProductImage.display_order",
    )
    variations: Mapped[List["ProductVariation"]] = relationship(
        back_populates="product",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def active_images(self) -> List["ProductImage"]:
        return [img for img in self.images if img.deleted_at is None]

    @property
    def active_variations(self) -> List["ProductVariation"]:
        return [var for var in self.variations if var.deleted_at is None]


class ProductImage(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "product_images"

    url: Mapped[str] = mapped_column(String(512), nullable=False)  # storage key
    display_order: Mapped[Optional[int]] = mapped_column(Integer)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    product: Mapped[Product] = relationship(back_populates="images")


class ProductVariation(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "product_variations"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(512))
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    product: Mapped[Product] = relationship(back_populates="variations")
