from enum import Enum


class ThemeMode(str, Enum):
    LIGHT = "LIGHT"
    DARK = "DARK"


class RoundedLevel(str, Enum):
    NONE = "NONE"
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


class BackgroundType(str, Enum):
    NONE = "NONE"
    STRIPED = "STRIPED"
    DOT = "DOT"
    GRID = "GRID"
    FLICKERING_GRID = "FLICKERING_GRID"
    LIGHT_RAYS = "LIGHT_RAYS"


class UserRole(str, Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


# Roles allowed to manage a store's catalog and settings.
MANAGING_ROLES = frozenset({UserRole.OWNER, UserRole.MANAGER})


class PayingPlan(str, Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"

    @property
    def monthly_price(self) -> int:
        """Monthly price in cents."""
        return _PLAN_PRICES[self]


_PLAN_PRICES = {PayingPlan.FREE: 0, PayingPlan.BASIC: 2900, PayingPlan.PRO: 4900}


class PlanDuration(str, Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @property
    def days(self) -> int:
        return 365 if self is PlanDuration.YEARLY else 30


class EventType(str, Enum):
    STORE_ACCESS = "STORE_ACCESS"
    PRODUCT_CLICK = "PRODUCT_CLICK"
    PRODUCT_CONVERSION = "PRODUCT_CONVERSION"
    CATEGORY_CLICK = "CATEGORY_CLICK"
    CATEGORY_ACCESS = "CATEGORY_ACCESS"


class EntityType(str, Enum):
    STORE = "STORE"
    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"
