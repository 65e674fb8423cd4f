import uuid
from typing import List

from fastapi import APIRouter, Body, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import remote_addr
from storefront.core.db import get_session
from storefront.core.deps import get_current_user
from storefront.models.user import User
from storefront.schemas.product import ProductCreate, ProductOut, ProductUpdate
from storefront.services import products

router = APIRouter(prefix="/products", tags=["products"])


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await products.create_product(session, payload, user, remote_addr(request))


@router.get("/store/{store_id}", response_model=List[ProductOut])
async def list_store_products(
    store_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await products.list_store_products(session, store_id)


@router.get("/category/{category_id}", response_model=List[ProductOut])
async def list_category_products(
    category_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await products.list_category_products(session, category_id)


@router.put("/category/{category_id}/order", response_model=List[ProductOut])
async def reorder_category_products(
    category_id: uuid.UUID,
    request: Request,
    product_ids: List[uuid.UUID] = Body(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await products.reorder_category_products(
        session, category_id, product_ids, user, remote_addr(request)
    )


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(
    product_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await products.get_product(session, product_id)


@router.put("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await products.update_product(session, product_id, payload, user, remote_addr(request))


@router.patch("/{product_id}/toggle-availability", response_model=ProductOut)
async def toggle_availability(
    product_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return await products.toggle_availability(session, product_id, user, remote_addr(request))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await products.delete_product(session, product_id, user, remote_addr(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
