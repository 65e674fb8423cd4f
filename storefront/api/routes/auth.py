from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.audit import log_audit, remote_addr
from storefront.core.config import settings
from storefront.core.db import get_session
from storefront.core.deps import get_current_user
from storefront.core.errors import AuthenticationFailed, IllegalUserArgument
from storefront.core.logging import user_id_ctx_var
from storefront.core.rate_limit import limiter
from storefront.core.security import (
    create_access_token,
    get_password_hash_async,
    verify_password_async,
)
from storefront.models.user import User
from storefront.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(str(user.id), {"email": user.email}),
        user_id=user.id,
        email=user.email,
        name=user.name,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE)
async def register(
    payload: RegisterRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    email = payload.email.lower()
    exists = await session.scalar(select(User.id).where(func.lower(User.email) == email))
    if exists:
        raise IllegalUserArgument("Email is already registered")

    user = User(
        name=payload.name,
        email=email,
        cpf=payload.cpf,
        password_hash=await get_password_hash_async(payload.password),
    )
    session.add(user)
    await session.flush()
    await log_audit(session, user.id, "auth", user.id, "REGISTER", remote_addr=remote_addr(request))
    await session.commit()
    user_id_ctx_var.set(str(user.id))
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.AUTH_RATE)
async def login(
    payload: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    user = await session.scalar(select(User).where(func.lower(User.email) == payload.email.lower()))
    if user is None or not await verify_password_async(payload.password, user.password_hash):
        if user is not None:
            await log_audit(
                session,
                user.id,
                "auth",
                user.id,
                "LOGIN_FAILED",
                details={"reason": "invalid_credentials"},
                remote_addr=remote_addr(request),
            )
            await session.commit()
        raise AuthenticationFailed("Invalid email or password")

    request.state.user_id = str(user.id)
    user_id_ctx_var.set(str(user.id))
    await log_audit(session, user.id, "auth", user.id, "LOGIN", remote_addr=remote_addr(request))
    await session.commit()
    return _auth_response(user)


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return user

