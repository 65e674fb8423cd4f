import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.enums import BackgroundType, PayingPlan, RoundedLevel, ThemeMode, UserRole
from storefront.schemas.common import ImageUpload
from storefront.schemas.product import ProductBasicOut

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class StoreCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    slug: str = Field(min_length=1, max_length=120, pattern=SLUG_PATTERN)
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    cnpj: Optional[str] = Field(default=None, max_length=18)
    logo: Optional[ImageUpload] = None


class StoreUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    logo: Optional[ImageUpload] = None


class BackgroundUpdate(BaseModel):
    background_type: Optional[BackgroundType] = None
    background_enabled: Optional[bool] = None
    background_opacity: Optional[float] = Field(default=None, ge=0, le=1)
    background_color: Optional[str] = Field(default=None, max_length=32)
    background_config_json: Optional[str] = Field(default=None, max_length=2000)


class ThemeUpdate(BackgroundUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    primary_color: Optional[str] = Field(default=None, max_length=32)
    theme_mode: Optional[ThemeMode] = None
    primary_font: Optional[str] = Field(default=None, max_length=80)
    secondary_font: Optional[str] = Field(default=None, max_length=80)
    rounded_level: Optional[RoundedLevel] = None
    product_card_shadow: Optional[str] = Field(default=None, max_length=64)
    logo: Optional[ImageUpload] = None
    banner_desktop: Optional[ImageUpload] = None
    banner_tablet: Optional[ImageUpload] = None
    banner_mobile: Optional[ImageUpload] = None


class AddressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class StoreOut(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    slug: str
    address: Optional[AddressOut] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    theme_mode: Optional[ThemeMode] = None
    primary_font: Optional[str] = None
    secondary_font: Optional[str] = None
    rounded_level: Optional[RoundedLevel] = None
    product_card_shadow: Optional[str] = None
    banner_desktop_url: Optional[str] = None
    banner_tablet_url: Optional[str] = None
    banner_mobile_url: Optional[str] = None
    background_type: Optional[BackgroundType] = None
    background_enabled: Optional[bool] = None
    background_opacity: Optional[float] = None
    background_color: Optional[str] = None
    background_config_json: Optional[str] = None
    active_plan: Optional[PayingPlan] = None
    created_at: datetime
    updated_at: datetime


class CategoryWithProductsOut(BaseModel):
    """A storefront section; the synthetic "Other" section has no id."""

    id: Optional[uuid.UUID] = None
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    store_id: uuid.UUID
    products: List[ProductBasicOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublicStoreOut(StoreOut):
    categories: List[CategoryWithProductsOut] = Field(default_factory=list)


class StoreUserOut(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    store_name: str
    store_slug: str
    user_id: uuid.UUID
    user_name: str
    user_email: str
    role: UserRole
    created_at: datetime


class AddStoreUserRequest(BaseModel):
    user_id: uuid.UUID
    role: UserRole


class SlugAvailabilityOut(BaseModel):
    slug: str
    available: bool
