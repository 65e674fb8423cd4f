from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import log_audit
from storefront.core.errors import IllegalUserArgument, ObjectNotFound
from storefront.models.category import Category
from storefront.models.user import User
from storefront.schemas.category import CategoryCreate, CategoryOut, CategoryUpdate
from storefront.services import images, storage
from storefront.services.permissions import get_store, require_manager

IMAGE_PREFIX = "categories"


def category_out(category: Category) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        description=category.description,
        image_url=storage.presigned_url(category.image_url),
        store_id=category.store_id,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


async def get_live_category(session: AsyncSession, category_id: uuid.UUID) -> Category:
    category = await session.get(Category, category_id)
    if category is None:
        raise ObjectNotFound(f"Category {category_id} not found")
    if category.deleted_at is not None:
        raise IllegalUserArgument("Category has been deleted")
    return category


async def create_category(
    session: AsyncSession,
    payload: CategoryCreate,
    user: User,
    remote_addr: Optional[str] = None,
) -> CategoryOut:
    store = await get_store(session, payload.store_id)
    await require_manager(session, store.id, user)

    category = Category(name=payload.name, description=payload.description, store_id=store.id)
    if payload.image is not None:
        category.image_url = await images.upload_base64_image(
            IMAGE_PREFIX, payload.image.base64_image, payload.image.file_name, payload.image.content_type
        )
    session.add(category)
    await session.flush()
    await log_audit(
        session, user.id, "category", category.id, "CREATE", details={"name": category.name}, remote_addr=remote_addr
    )
    await session.commit()
    return category_out(category)


async def update_category(
    session: AsyncSession,
    category_id: uuid.UUID,
    payload: CategoryUpdate,
    user: User,
    remote_addr: Optional[str] = None,
) -> CategoryOut:
    category = await get_live_category(session, category_id)
    await require_manager(session, category.store_id, user)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"image"})
    for field, value in changes.items():
        setattr(category, field, value)
    stale_key = None
    if payload.image is not None:
        stale_key, category.image_url = category.image_url, await images.upload_base64_image(
            IMAGE_PREFIX,
            payload.image.base64_image,
            payload.image.file_name,
            payload.image.content_type,
        )
    await log_audit(
        session, user.id, "category", category.id, "UPDATE", details=changes, remote_addr=remote_addr
    )
    await session.commit()
    await storage.delete_object(stale_key)
    return category_out(category)


async def get_category(session: AsyncSession, category_id: uuid.UUID) -> CategoryOut:
    return category_out(await get_live_category(session, category_id))


async def list_store_categories(session: AsyncSession, store_id: uuid.UUID) -> List[CategoryOut]:
    result = await session.execute(
        select(Category)
        .where(Category.store_id == store_id, Category.deleted_at.is_(None))
        .order_by(Category.created_at)
    )
    return [category_out(c) for c in result.scalars().all()]


async def delete_category(
    session: AsyncSession,
    category_id: uuid.UUID,
    user: User,
    remote_addr: Optional[str] = None,
) -> None:
    category = await get_live_category(session, category_id)
    await require_manager(session, category.store_id, user)

    category.soft_delete()
    image_key, category.image_url = category.image_url, None
    await log_audit(session, user.id, "category", category.id, "DELETE", remote_addr=remote_addr)
    await session.commit()
    await storage.delete_object(image_key)
