import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.schemas.category import CategoryOut
from storefront.schemas.common import ImageUpload


class ProductImageUpload(ImageUpload):
    display_order: Optional[int] = None


class ProductVariationIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    image_url: Optional[str] = Field(default=None, max_length=512)


class ProductCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    promotional_price: Optional[int] = Field(default=None, ge=0)
    show_promotion_badge: Optional[bool] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    store_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    display_order: Optional[int] = None
    available: Optional[bool] = None
    images: Optional[List[ProductImageUpload]] = None
    variations: Optional[List[ProductVariationIn]] = None


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[int] = Field(default=None, ge=0)
    promotional_price: Optional[int] = Field(default=None, ge=0)
    show_promotion_badge: Optional[bool] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    category_id: Optional[uuid.UUID] = None
    display_order: Optional[int] = None
    available: Optional[bool] = None
    images: Optional[List[ProductImageUpload]] = None
    variations: Optional[List[ProductVariationIn]] = None


class ProductImageOut(BaseModel):
    id: uuid.UUID
    url: Optional[str] = None
    display_order: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ProductVariationOut(BaseModel):
    id: uuid.UUID
    title: str
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProductOut(BaseModel):
    id: uuid.UUID
    title: str
    price: int
    promotional_price: Optional[int] = None
    show_promotion_badge: Optional[bool] = None
    description: Optional[str] = None
    store_id: uuid.UUID
    category: Optional[CategoryOut] = None
    display_order: Optional[int] = None
    available: bool
    images: List[ProductImageOut] = Field(default_factory=list)
    variations: List[ProductVariationOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProductBasicOut(BaseModel):
    """Product as listed on the public storefront."""

    id: uuid.UUID
    title: str
    price: int
    promotional_price: Optional[int] = None
    show_promotion_badge: Optional[bool] = None
    description: Optional[str] = None
    available: bool
    display_order: Optional[int] = None
    images: List[ProductImageOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
