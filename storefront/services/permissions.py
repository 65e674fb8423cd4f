"""Store lookups and membership checks shared by the catalog services."""

from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import IllegalUserArgument, InsufficientPermission, ObjectNotFound
from storefront.models.enums import MANAGING_ROLES, UserRole
from storefront.models.store import Store
from storefront.models.store_user import StoreUser
from storefront.models.user import User


async def get_store(session: AsyncSession, store_id: uuid.UUID) -> Store:
    """Return a live store; unknown ids raise 404 and deleted stores 400."""

    store = await session.get(Store, store_id)
    if store is None:
        raise ObjectNotFound(f"Store {store_id} not found")
    if store.deleted_at is not None:
        raise IllegalUserArgument("Store has been deleted")
    return store


async def get_membership(
    session: AsyncSession, store_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[StoreUser]:
    return await session.scalar(
        select(StoreUser).where(
            StoreUser.store_id == store_id,
            StoreUser.user_id == user_id,
            StoreUser.deleted_at.is_(None),
        )
    )


async def require_manager(
    session: AsyncSession, store_id: uuid.UUID, user: User
) -> StoreUser:
    """Ensure ``user`` is an OWNER or MANAGER of the store."""

    membership = await get_membership(session, store_id, user.id)
    if membership is None or membership.role not in MANAGING_ROLES:
        raise InsufficientPermission("You do not have permission to manage this store")
    return membership


async def require_owner(session: AsyncSession, store_id: uuid.UUID, user: User) -> StoreUser:
    membership = await get_membership(session, store_id, user.id)
    if membership is None or membership.role != UserRole.OWNER:
        raise InsufficientPermission("Only the store owner can perform this action")
    return membership


async def user_memberships(session: AsyncSession, user_id: uuid.UUID) -> List[StoreUser]:
    """Active memberships of a user in live stores, oldest first."""

    result = await session.execute(
        select(StoreUser)
        .join(Store, Store.id == StoreUser.store_id)
        .where(
            StoreUser.user_id == user_id,
            StoreUser.deleted_at.is_(None),
            Store.deleted_at.is_(None),
        )
        .order_by(StoreUser.created_at)
    )
    return list(result.scalars().all())
