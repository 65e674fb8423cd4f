import uuid
from typing import List

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import remote_addr
from storefront.core.db import get_session
from storefront.core.deps import get_current_user
from storefront.models.user import User
from storefront.schemas.category import CategoryCreate, CategoryOut, CategoryUpdate
from storefront.services import categories

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await categories.create_category(session, payload, user, remote_addr(request))


@router.get("/store/{store_id}", response_model=List[CategoryOut])
async def list_store_categories(
    store_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await categories.list_store_categories(session, store_id)


@router.get("/{category_id}", response_model=CategoryOut)
async def get_category(
    category_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await categories.get_category(session, category_id)


@router.put("/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: uuid.UUID,
    payload: CategoryUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await categories.update_category(session, category_id, payload, user, remote_addr(request))


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await categories.delete_category(session, category_id, user, remote_addr(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
