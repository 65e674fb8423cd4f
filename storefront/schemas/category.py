import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from storefront.schemas.common import ImageUpload


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    store_id: uuid.UUID
    image: Optional[ImageUpload] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    image: Optional[ImageUpload] = None


class CategoryOut(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    store_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
