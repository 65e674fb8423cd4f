import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import remote_addr
from storefront.core.db import get_session
from storefront.core.deps import get_current_user
from storefront.models.user import User
from storefront.schemas.store import (
    AddStoreUserRequest,
    BackgroundUpdate,
    PublicStoreOut,
    SlugAvailabilityOut,
    StoreCreate,
    StoreOut,
    StoreUpdate,
    StoreUserOut,
    ThemeUpdate,
)
from storefront.services import stores

router = APIRouter(prefix="/stores", tags=["stores"])


@router.post("", response_model=StoreOut, status_code=status.HTTP_201_CREATED)
async def create_store(
    payload: StoreCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.create_store(session, payload, user, remote_addr(request))


@router.get("/check-slug-availability", response_model=SlugAvailabilityOut)
async def check_slug_availability(
    slug: str = Query(..., min_length=1, max_length=100),
    session: AsyncSession = Depends(get_session),
):
    return SlugAvailabilityOut(slug=slug, available=await stores.is_slug_available(session, slug))


@router.get("/by-slug/{slug}", response_model=StoreOut)
async def get_store_by_slug(slug: str, session: AsyncSession = Depends(get_session)):
    return await stores.get_store_by_slug(session, slug)


@router.get("/public/{slug}", response_model=PublicStoreOut)
async def get_public_store(slug: str, session: AsyncSession = Depends(get_session)):
    return await stores.get_public_store(session, slug)


@router.get("/user/{user_id}", response_model=List[StoreUserOut])
async def list_user_stores(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.list_user_stores(session, user_id, user)


@router.get("/{store_id}", response_model=StoreOut)
async def get_store(
    store_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.get_store_for_manager(session, store_id, user)


@router.put("/{store_id}", response_model=StoreOut)
async def update_store(
    store_id: uuid.UUID,
    payload: StoreUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.update_store(session, store_id, payload, user, remote_addr(request))


@router.put("/{store_id}/background", response_model=StoreOut)
async def update_background(
    store_id: uuid.UUID,
    payload: BackgroundUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.update_background(session, store_id, payload, user, remote_addr(request))


@router.put("/{store_id}/theme", response_model=StoreOut)
async def update_theme(
    store_id: uuid.UUID,
    payload: ThemeUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.update_theme(session, store_id, payload, user, remote_addr(request))


@router.delete("/{store_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_store(
    store_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await stores.delete_store(session, store_id, user, remote_addr(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{store_id}/users", response_model=List[StoreUserOut])
async def list_store_users(
    store_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.list_store_users(session, store_id, user)


@router.post("/{store_id}/users", response_model=StoreUserOut, status_code=status.HTTP_201_CREATED)
async def add_store_user(
    store_id: uuid.UUID,
    payload: AddStoreUserRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await stores.add_store_user(session, store_id, payload, user, remote_addr(request))


@router.delete("/{store_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_store_user(
    store_id: uuid.UUID,
    user_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await stores.remove_store_user(session, store_id, user_id, user, remote_addr(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
