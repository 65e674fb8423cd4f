"""Product catalog: CRUD, images, variations and per-category ordering."""

from __future__ import annotations

import uuid
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import log_audit
from storefront.core.config import settings
from storefront.core.errors import IllegalUserArgument, ObjectNotFound
from storefront.models.base import utcnow
from storefront.models.category import Category
from storefront.models.product import Product, ProductImage, ProductVariation
from storefront.models.user import User
from storefront.schemas.product import (
    ProductBasicOut,
    ProductCreate,
    ProductImageOut,
    ProductImageUpload,
    ProductOut,
    ProductUpdate,
    ProductVariationIn,
    ProductVariationOut,
)
from storefront.services import images, storage
from storefront.services.categories import category_out, get_live_category
from storefront.services.permissions import get_store, require_manager

IMAGE_PREFIX = "products"


def product_image_out(image: ProductImage) -> ProductImageOut:
    return ProductImageOut(
        id=image.id,
        url=storage.presigned_url(image.url),
        display_order=image.display_order,
        created_at=image.created_at,
        updated_at=image.updated_at,
    )


def product_out(product: Product) -> ProductOut:
    category = product.category
    return ProductOut(
        id=product.id,
        title=product.title,
        price=product.price,
        promotional_price=product.promotional_price,
        show_promotion_badge=product.show_promotion_badge,
        description=product.description,
        store_id=product.store_id,
        category=category_out(category) if category and category.deleted_at is None else None,
        display_order=product.display_order,
        available=product.available,
        images=[product_image_out(img) for img in product.active_images],
        variations=[
            ProductVariationOut(
                id=var.id,
                title=var.title,
                image_url=var.image_url,
                created_at=var.created_at,
                updated_at=var.updated_at,
            )
            for var in product.active_variations
        ],
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def product_basic_out(product: Product) -> ProductBasicOut:
    return ProductBasicOut(
        id=product.id,
        title=product.title,
        price=product.price,
        promotional_price=product.promotional_price,
        show_promotion_badge=product.show_promotion_badge,
        description=product.description,
        available=product.available,
        display_order=product.display_order,
        images=[product_image_out(img) for img in product.active_images],
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


async def get_live_product(session: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await session.get(Product, product_id)
    if product is None:
        raise ObjectNotFound(f"Product {product_id} not found")
    if product.deleted_at is not None:
        raise IllegalUserArgument("Product has been deleted")
    return product


async def _store_category(session: AsyncSession, category_id: uuid.UUID, store_id: uuid.UUID) -> Category:
    category = await get_live_category(session, category_id)
    if category.store_id != store_id:
        raise IllegalUserArgument("Category does not belong to this store")
    return category


def _check_image_count(uploads: Optional[List[ProductImageUpload]]) -> None:
    if uploads and len(uploads) > settings.MAX_PRODUCT_IMAGES:
        raise IllegalUserArgument(
            f"A product can have at most {settings.MAX_PRODUCT_IMAGES} images"
        )


async def _upload_images(uploads: List[ProductImageUpload]) -> List[ProductImage]:
    uploaded: List[ProductImage] = []
    for index, upload in enumerate(uploads):
        key = await images.upload_base64_image(
            IMAGE_PREFIX, upload.base64_image, upload.file_name, upload.content_type
        )
        order = upload.display_order if upload.display_order is not None else index
        uploaded.append(ProductImage(url=key, display_order=order))
    return uploaded


def _variations(items: List[ProductVariationIn]) -> List[ProductVariation]:
    return [ProductVariation(title=item.title, image_url=item.image_url) for item in items]


async def create_product(
    session: AsyncSession,
    payload: ProductCreate,
    user: User,
    remote_addr: Optional[str] = None,
) -> ProductOut:
    store = await get_store(session, payload.store_id)
    await require_manager(session, store.id, user)
    category = None
    if payload.category_id is not None:
        category = await _store_category(session, payload.category_id, store.id)
    _check_image_count(payload.images)

    product = Product(
        title=payload.title,
        price=payload.price,
        promotional_price=payload.promotional_price,
        show_promotion_badge=payload.show_promotion_badge,
        description=payload.description,
        store_id=store.id,
        category=category,
        display_order=payload.display_order,
        available=True if payload.available is None else payload.available,
        images=await _upload_images(payload.images or []),
        variations=_variations(payload.variations or []),
    )
    session.add(product)
    await session.flush()
    await log_audit(
        session, user.id, "product", product.id, "CREATE", details={"title": product.title}, remote_addr=remote_addr
    )
    await session.commit()
    logger.bind(product_id=str(product.id), store_id=str(store.id)).info("product_created")
    return product_out(product)


async def update_product(
    session: AsyncSession,
    product_id: uuid.UUID,
    payload: ProductUpdate,
    user: User,
    remote_addr: Optional[str] = None,
) -> ProductOut:
    product = await get_live_product(session, product_id)
    await require_manager(session, product.store_id, user)
    _check_image_count(payload.images)

    changes = payload.model_dump(
        exclude_unset=True, exclude_none=True, exclude={"images", "variations", "category_id"}
    )
    for field, value in changes.items():
        setattr(product, field, value)
    if payload.category_id is not None:
        product.category = await _store_category(session, payload.category_id, product.store_id)
        changes["category_id"] = payload.category_id

    stale_keys: List[str] = []
    if payload.images is not None:
        for image in product.active_images:
            image.soft_delete()
            stale_keys.append(image.url)
        product.images.extend(await _upload_images(payload.images))
        changes["images"] = len(payload.images)
    if payload.variations is not None:
        for variation in product.active_variations:
            variation.soft_delete()
        product.variations.extend(_variations(payload.variations))
        changes["variations"] = len(payload.variations)

    await log_audit(
        session, user.id, "product", product.id, "UPDATE", details=changes, remote_addr=remote_addr
    )
    await session.commit()
    for key in stale_keys:
        await storage.delete_object(key)
    return product_out(product)


async def get_product(session: AsyncSession, product_id: uuid.UUID) -> ProductOut:
    return product_out(await get_live_product(session, product_id))


def _catalog_order():
    return (Product.display_order.is_(None), Product.display_order, Product.created_at)


async def list_store_products(session: AsyncSession, store_id: uuid.UUID) -> List[ProductOut]:
    result = await session.execute(
        select(Product)
        .where(Product.store_id == store_id, Product.deleted_at.is_(None))
        .order_by(*_catalog_order())
    )
    return [product_out(p) for p in result.scalars().all()]


async def list_category_products(session: AsyncSession, category_id: uuid.UUID) -> List[ProductOut]:
    await get_live_category(session, category_id)
    result = await session.execute(
        select(Product)
        .where(Product.category_id == category_id, Product.deleted_at.is_(None))
        .order_by(*_catalog_order())
    )
    return [product_out(p) for p in result.scalars().all()]


async def delete_product(
    session: AsyncSession,
    product_id: uuid.UUID,
    user: User,
    remote_addr: Optional[str] = None,
) -> None:
    product = await get_live_product(session, product_id)
    await require_manager(session, product.store_id, user)

    now = utcnow()
    stale_keys = []
    for image in product.active_images:
        image.deleted_at = now
        stale_keys.append(image.url)
    for variation in product.active_variations:
        variation.deleted_at = now
    product.deleted_at = now

    await log_audit(session, user.id, "product", product.id, "DELETE", remote_addr=remote_addr)
    await session.commit()
    for key in stale_keys:
        await storage.delete_object(key)


async def reorder_category_products(
    session: AsyncSession,
    category_id: uuid.UUID,
    product_ids: List[uuid.UUID],
    user: User,
    remote_addr: Optional[str] = None,
) -> List[ProductOut]:
    """Set ``display_order`` to the 1-based position of each id in ``product_ids``."""

    category = await get_live_category(session, category_id)
    await require_manager(session, category.store_id, user)
    if len(set(product_ids)) != len(product_ids):
        raise IllegalUserArgument("Product ids must not repeat")

    result = await session.execute(
        select(Product).where(
            Product.id.in_(product_ids),
            Product.category_id == category.id,
            Product.deleted_at.is_(None),
        )
    )
    by_id = {p.id: p for p in result.scalars().all()}
    missing = [str(pid) for pid in product_ids if pid not in by_id]
    if missing:
        raise IllegalUserArgument(
            f"Products not found in category {category.id}: {', '.join(missing)}"
        )

    for position, pid in enumerate(product_ids, start=1):
        by_id[pid].display_order = position
    await log_audit(
        session,
        user.id,
        "category",
        category.id,
        "REORDER",
        details={"product_ids": [str(pid) for pid in product_ids]},
        remote_addr=remote_addr,
    )
    await session.commit()
    return [product_out(by_id[pid]) for pid in product_ids]


async def toggle_availability(
    session: AsyncSession,
    product_id: uuid.UUID,
    user: User,
    remote_addr: Optional[str] = None,
) -> ProductOut:
    product = await get_live_product(session, product_id)
    await require_manager(session, product.store_id, user)
    product.available = not product.available
    await log_audit(
        session,
        user.id,
        "product",
        product.id,
        "AVAILABILITY",
        details={"available": product.available},
        remote_addr=remote_addr,
    )
    await session.commit()
    return product_out(product)
