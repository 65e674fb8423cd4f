import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.models.enums import EntityType, EventType


class StoreEventCreate(BaseModel):
    event_type: EventType
    entity_id: Optional[uuid.UUID] = None
    entity_type: Optional[EntityType] = None
    metadata: Optional[str] = None


class StoreEventOut(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    event_type: EventType
    entity_id: Optional[uuid.UUID] = None
    entity_type: Optional[EntityType] = None
    metadata: Optional[str] = None
    created_at: datetime


class DailyMetricsOut(BaseModel):
    date: datetime
    accesses: int = 0
    product_clicks: int = 0
    product_conversions: int = 0
    category_clicks: int = 0
    category_accesses: int = 0


class ProductMetricsOut(BaseModel):
    product_id: str
    product_title: str
    clicks: int = 0
    conversions: int = 0
    conversion_rate: float = 0.0


class CategoryMetricsOut(BaseModel):
    category_id: str
    category_name: str
    clicks: int = 0
    accesses: int = 0


class StoreMetricsOut(BaseModel):
    store_id: uuid.UUID
    store_name: str
    start_date: datetime
    end_date: datetime
    total_accesses: int = 0
    total_product_clicks: int = 0
    total_product_conversions: int = 0
    total_category_clicks: int = 0
    total_category_accesses: int = 0
    daily_metrics: List[DailyMetricsOut] = Field(default_factory=list)
    top_products_by_clicks: List[ProductMetricsOut] = Field(default_factory=list)
    top_products_by_conversions: List[ProductMetricsOut] = Field(default_factory=list)
    top_categories_by_clicks: List[CategoryMetricsOut] = Field(default_factory=list)
    top_categories_by_accesses: List[CategoryMetricsOut] = Field(default_factory=list)
