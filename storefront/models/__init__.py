"""ORM model exports for convenient imports elsewhere in the app."""

from storefront.models.base import Base
from storefront.models.audit import AuditLog
from storefront.models.billing import Billing
from storefront.models.category import Category
from storefront.models.product import Product, ProductImage, ProductVariation
from storefront.models.store import Address, Store
from storefront.models.store_event import StoreEvent
from storefront.models.store_metrics import StoreMetrics
from storefront.models.store_user import StoreUser
from storefront.models.user import User

__all__ = [
    "Base",
    "Address",
    "AuditLog",
    "Billing",
    "Category",
    "Product",
    "ProductImage",
    "ProductVariation",
    "Store",
    "StoreEvent",
    "StoreMetrics",
    "StoreUser",
    "User",
]
