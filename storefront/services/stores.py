"""Store lifecycle, theming, membership and the public storefront read path."""

from __future__ import annotations

import uuid
from typing import Any, List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import log_audit
from storefront.core.errors import IllegalUserArgument, InsufficientPermission, ObjectNotFound
from storefront.models.category import Category
from storefront.models.enums import PayingPlan, UserRole
from storefront.models.product import Product
from storefront.models.store import Address, Store
from storefront.models.store_user import StoreUser
from storefront.models.user import User
from storefront.schemas.common import ImageUpload
from storefront.schemas.store import (
    AddStoreUserRequest,
    AddressOut,
    BackgroundUpdate,
    CategoryWithProductsOut,
    PublicStoreOut,
    StoreCreate,
    StoreOut,
    StoreUpdate,
    StoreUserOut,
    ThemeUpdate,
)
from storefront.services import images, storage
from storefront.services.billing import get_active_billing
from storefront.services.products import product_basic_out
from storefront.services.permissions import (
    get_store,
    require_manager,
    require_owner,
    user_memberships,
)

LOGO_PREFIX = "stores/logos"
BANNER_PREFIX = "stores/banners"
BACKGROUND_PLANS = frozenset({PayingPlan.BASIC, PayingPlan.PRO})
BACKGROUND_FIELDS = tuple(BackgroundUpdate.model_fields)
ADDRESS_FIELDS = ("street", "city", "state", "zip_code")

UNCATEGORIZED_NAME = "Other"
UNCATEGORIZED_DESCRIPTION = "Products without a category"


def store_out(store: Store, active_plan: Optional[PayingPlan] = None, cls=StoreOut, **extra: Any):
    return cls(
        id=store.id,
        name=store.name,
        description=store.description,
        slug=store.slug,
        address=AddressOut.model_validate(store.address) if store.address else None,
        phone_number=store.phone_number,
        email=store.email,
        instagram=store.instagram,
        facebook=store.facebook,
        logo_url=storage.presigned_url(store.logo_url),
        primary_color=store.primary_color,
        theme_mode=store.theme_mode,
        primary_font=store.primary_font,
        secondary_font=store.secondary_font,
        rounded_level=store.rounded_level,
        product_card_shadow=store.product_card_shadow,
        banner_desktop_url=storage.presigned_url(store.banner_desktop_url),
        banner_tablet_url=storage.presigned_url(store.banner_tablet_url),
        banner_mobile_url=storage.presigned_url(store.banner_mobile_url),
        background_type=store.background_type,
        background_enabled=store.background_enabled,
        background_opacity=store.background_opacity,
        background_color=store.background_color,
        background_config_json=store.background_config_json,
        active_plan=active_plan,
        created_at=store.created_at,
        updated_at=store.updated_at,
        **extra,
    )


async def _store_response(session: AsyncSession, store: Store) -> StoreOut:
    billing = await get_active_billing(session, store.id)
    return store_out(store, billing.paying_plan if billing else None)


def membership_out(membership: StoreUser) -> StoreUserOut:
    return StoreUserOut(
        id=membership.id,
        store_id=membership.store_id,
        store_name=membership.store.name,
        store_slug=membership.store.slug,
        user_id=membership.user_id,
        user_name=membership.user.name,
        user_email=membership.user.email,
        role=membership.role,
        created_at=membership.created_at,
    )


async def is_slug_available(session: AsyncSession, slug: str) -> bool:
    # Deleted stores keep their slug; the unique constraint covers every row.
    existing = await session.scalar(
        select(func.count()).select_from(Store).where(Store.slug == slug.strip().lower())
    )
    return not existing


async def create_store(
    session: AsyncSession,
    payload: StoreCreate,
    user: User,
    remote_addr: Optional[str] = None,
) -> StoreOut:
    slug = payload.slug.strip().lower()
    if not await is_slug_available(session, slug):
        raise IllegalUserArgument(f"Slug '{slug}' is already in use")

    data = payload.model_dump(exclude={"logo", "slug", *ADDRESS_FIELDS})
    store = Store(**data, slug=slug)
    store.address = Address(**payload.model_dump(include=set(ADDRESS_FIELDS)))
    if payload.logo is not None:
        store.logo_url = await _upload(payload.logo, LOGO_PREFIX)

    session.add(store)
    await session.flush()
    session.add(StoreUser(store_id=store.id, user_id=user.id, role=UserRole.OWNER))
    await log_audit(
        session, user.id, "store", store.id, "CREATE", details={"slug": slug}, remote_addr=remote_addr
    )
    await session.commit()
    logger.bind(store_id=str(store.id), slug=slug).info("store_created")
    return store_out(store)


async def update_store(
    session: AsyncSession,
    store_id: uuid.UUID,
    payload: StoreUpdate,
    user: User,
    remote_addr: Optional[str] = None,
) -> StoreOut:
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"logo"})
    address_changes = {k: changes.pop(k) for k in ADDRESS_FIELDS if k in changes}
    for field, value in changes.items():
        setattr(store, field, value)
    if address_changes:
        if store.address is None:
            store.address = Address(**address_changes)
        else:
            for field, value in address_changes.items():
                setattr(store.address, field, value)
    stale_keys = []
    if payload.logo is not None:
        stale_keys = await _replace_images(store, {"logo_url": (payload.logo, LOGO_PREFIX)})

    await log_audit(
        session, user.id, "store", store.id, "UPDATE", details=changes, remote_addr=remote_addr
    )
    await session.commit()
    for key in stale_keys:
        await storage.delete_object(key)
    return await _store_response(session, store)


async def _require_background_plan(session: AsyncSession, store: Store) -> PayingPlan:
    billing = await get_active_billing(session, store.id)
    if billing is None:
        raise IllegalUserArgument(
            "The store has no active plan. At least the BASIC plan is required to change the background"
        )
    if billing.paying_plan not in BACKGROUND_PLANS:
        raise InsufficientPermission("Background customization is only available on BASIC and PRO plans")
    return billing.paying_plan


async def update_background(
    session: AsyncSession,
    store_id: uuid.UUID,
    payload: BackgroundUpdate,
    user: User,
    remote_addr: Optional[str] = None,
) -> StoreOut:
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)
    plan = await _require_background_plan(session, store)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(store, field, value)
    await log_audit(
        session, user.id, "store", store.id, "BACKGROUND", details=changes, remote_addr=remote_addr
    )
    await session.commit()
    return store_out(store, plan)


async def update_theme(
    session: AsyncSession,
    store_id: uuid.UUID,
    payload: ThemeUpdate,
    user: User,
    remote_addr: Optional[str] = None,
) -> StoreOut:
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)

    changes = payload.model_dump(
        exclude_unset=True,
        exclude_none=True,
        exclude={"logo", "banner_desktop", "banner_tablet", "banner_mobile"},
    )
    if any(field in changes for field in BACKGROUND_FIELDS):
        await _require_background_plan(session, store)
    for field, value in changes.items():
        setattr(store, field, value)

    uploads = {
        field: (image, prefix)
        for field, image, prefix in (
            ("logo_url", payload.logo, LOGO_PREFIX),
            ("banner_desktop_url", payload.banner_desktop, BANNER_PREFIX),
            ("banner_tablet_url", payload.banner_tablet, BANNER_PREFIX),
            ("banner_mobile_url", payload.banner_mobile, BANNER_PREFIX),
        )
        if image is not None
    }
    stale_keys = await _replace_images(store, uploads)

    await log_audit(
        session, user.id, "store", store.id, "THEME", details=changes, remote_addr=remote_addr
    )
    await session.commit()
    for key in stale_keys:
        await storage.delete_object(key)
    return await _store_response(session, store)


async def delete_store(
    session: AsyncSession,
    store_id: uuid.UUID,
    user: User,
    remote_addr: Optional[str] = None,
) -> None:
    store = await get_store(session, store_id)
    await require_owner(session, store.id, user)
    store.soft_delete()
    await log_audit(session, user.id, "store", store.id, "DELETE", remote_addr=remote_addr)
    await session.commit()
    logger.bind(store_id=str(store.id)).info("store_deleted")


async def get_store_for_manager(session: AsyncSession, store_id: uuid.UUID, user: User) -> StoreOut:
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)
    return await _store_response(session, store)


async def _live_store_by_slug(session: AsyncSession, slug: str) -> Store:
    store = await session.scalar(
        select(Store).where(Store.slug == slug.strip().lower(), Store.deleted_at.is_(None))
    )
    if store is None:
        raise ObjectNotFound(f"Store '{slug}' not found")
    return store


async def get_store_by_slug(session: AsyncSession, slug: str) -> StoreOut:
    return await _store_response(session, await _live_store_by_slug(session, slug))


async def get_public_store(session: AsyncSession, slug: str) -> PublicStoreOut:
    """Storefront payload: the store and its categories, each with available products."""

    store = await _live_store_by_slug(session, slug)
    billing = await get_active_billing(session, store.id)

    categories = (
        await session.execute(
            select(Category)
            .where(Category.store_id == store.id, Category.deleted_at.is_(None))
            .order_by(Category.created_at)
        )
    ).scalars().all()
    products = (
        await session.execute(
            select(Product)
            .where(
                Product.store_id == store.id,
                Product.deleted_at.is_(None),
                Product.available.is_(True),
            )
            .order_by(Product.display_order.is_(None), Product.display_order, Product.created_at)
        )
    ).scalars().all()

    by_category: dict[Optional[uuid.UUID], List[Product]] = {}
    for product in products:
        by_category.setdefault(product.category_id, []).append(product)

    sections = [
        CategoryWithProductsOut(
            id=category.id,
            name=category.name,
            description=category.description,
            image_url=storage.presigned_url(category.image_url),
            store_id=store.id,
            products=[product_basic_out(p) for p in by_category.get(category.id, [])],
            created_at=category.created_at,
            updated_at=category.updated_at,
        )
        for category in categories
    ]
    live_category_ids = {category.id for category in categories}
    uncategorized = [
        p for p in products if p.category_id is None or p.category_id not in live_category_ids
    ]
    if uncategorized:
        sections.append(
            CategoryWithProductsOut(
                id=None,
                name=UNCATEGORIZED_NAME,
                description=UNCATEGORIZED_DESCRIPTION,
                store_id=store.id,
                products=[product_basic_out(p) for p in uncategorized],
            )
        )

    return store_out(
        store,
        billing.paying_plan if billing else None,
        cls=PublicStoreOut,
        categories=sections,
    )


async def list_user_stores(
    session: AsyncSession, user_id: uuid.UUID, current_user: User
) -> List[StoreUserOut]:
    if user_id != current_user.id:
        raise InsufficientPermission("You can only list your own stores")
    return [membership_out(m) for m in await user_memberships(session, user_id)]


async def list_store_users(session: AsyncSession, store_id: uuid.UUID, user: User) -> List[StoreUserOut]:
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)
    result = await session.execute(
        select(StoreUser)
        .where(StoreUser.store_id == store.id, StoreUser.deleted_at.is_(None))
        .order_by(StoreUser.created_at)
    )
    return [membership_out(m) for m in result.scalars().all()]


async def add_store_user(
    session: AsyncSession,
    store_id: uuid.UUID,
    payload: AddStoreUserRequest,
    user: User,
    remote_addr: Optional[str] = None,
) -> StoreUserOut:
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)
    if payload.role == UserRole.OWNER:
        raise IllegalUserArgument("A store has a single owner")
    if await session.get(User, payload.user_id) is None:
        raise ObjectNotFound(f"User {payload.user_id} not found")

    membership = await session.scalar(
        select(StoreUser).where(
            StoreUser.store_id == store.id, StoreUser.user_id == payload.user_id
        )
    )
    if membership is not None and membership.deleted_at is None:
        raise IllegalUserArgument("User is already a member of this store")
    if membership is not None:
        membership.deleted_at = None
        membership.role = payload.role
    else:
        membership = StoreUser(store_id=store.id, user_id=payload.user_id, role=payload.role)
        session.add(membership)

    await log_audit(
        session,
        user.id,
        "store_user",
        store.id,
        "ADD",
        details={"user_id": payload.user_id, "role": payload.role.value},
        remote_addr=remote_addr,
    )
    await session.commit()
    membership = await session.scalar(
        select(StoreUser)
        .where(StoreUser.id == membership.id)
        .execution_options(populate_existing=True)
    )
    return membership_out(membership)


async def remove_store_user(
    session: AsyncSession,
    store_id: uuid.UUID,
    member_id: uuid.UUID,
    user: User,
    remote_addr: Optional[str] = None,
) -> None:
    store = await get_store(session, store_id)
    await require_manager(session, store.id, user)
    membership = await session.scalar(
        select(StoreUser).where(StoreUser.store_id == store.id, StoreUser.user_id == member_id)
    )
    if membership is None:
        raise ObjectNotFound("User is not a member of this store")
    if membership.deleted_at is not None:
        raise IllegalUserArgument("User was already removed from this store")
    if membership.role == UserRole.OWNER:
        raise IllegalUserArgument("The store owner cannot be removed")

    membership.soft_delete()
    await log_audit(
        session,
        user.id,
        "store_user",
        store.id,
        "REMOVE",
        details={"user_id": member_id},
        remote_addr=remote_addr,
    )
    await session.commit()


async def _upload(image: ImageUpload, prefix: str) -> str:
    return await images.upload_base64_image(
        prefix, image.base64_image, image.file_name, image.content_type
    )


async def _replace_images(
    store: Store, uploads: dict[str, tuple[ImageUpload, str]]
) -> List[str]:
    """Upload new images onto ``store`` and return the keys they replace.

    Every image is validated before the first upload. The replaced keys must
    only be deleted once the new keys are committed.
    """

    for image, _ in uploads.values():
        images.check_image(image.base64_image, image.file_name, image.content_type)
    stale_keys = []
    for field, (image, prefix) in uploads.items():
        old_key = getattr(store, field)
        setattr(store, field, await _upload(image, prefix))
        if old_key:
            stale_keys.append(old_key)
    return stale_keys
