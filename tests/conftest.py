import base64
import os
import uuid
from typing import Optional

import pytest

# Ensure required environment variables are present before settings import
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_CREATE_ALL"] = "false"
os.environ["ABACATE_PAY_WEBHOOK_SECRET"] = "webhook-secret"

from httpx import ASGITransport, AsyncClient  # noqa: E402

from storefront.core.db import SessionLocal, engine  # noqa: E402
from storefront.core.rate_limit import limiter  # noqa: E402
from storefront.core.security import create_access_token  # noqa: E402
from storefront.models import Base, Store, StoreUser, User  # noqa: E402
from storefront.models.enums import UserRole  # noqa: E402
from storefront.services import storage  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def png_upload(name: str = "photo.png") -> dict:
    return {"base64_image": b64(PNG_BYTES), "file_name": name, "content_type": "image/png"}


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


class FakeStorage:
    """In-memory stand-in for the S3 bucket."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []

    async def upload_object(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        self.objects[key] = data
        return key

    async def delete_object(self, key: Optional[str]) -> None:
        if key:
            self.deleted.append(key)
            self.objects.pop(key, None)

    def presigned_url(self, key: Optional[str]) -> Optional[str]:
        return f"https://files.test/{key}?signed=1" if key else None


@pytest.fixture(autouse=True)
def fake_storage(monkeypatch):
    fake = FakeStorage()
    monkeypatch.setattr(storage, "upload_object", fake.upload_object)
    monkeypatch.setattr(storage, "delete_object", fake.delete_object)
    monkeypatch.setattr(storage, "presigned_url", fake.presigned_url)
    return fake


@pytest.fixture
async def db(anyio_backend):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def session(db):
    async with SessionLocal() as s:
        yield s


@pytest.fixture
async def client(db):
    from storefront.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def make_user(session, email: Optional[str] = None, name: str = "Ana Lima") -> User:
    user = User(
        name=name,
        email=email or f"{uuid.uuid4().hex[:10]}@example.com",
        cpf="12345678901",
        password_hash="not-a-real-hash",
    )
    session.add(user)
    await session.commit()
    return user


async def make_store(session, owner: User, slug: Optional[str] = None, **fields) -> Store:
    store = Store(name=fields.pop("name", "Loja Teste"), slug=slug or f"loja-{uuid.uuid4().hex[:8]}", **fields)
    session.add(store)
    await session.flush()
    session.add(StoreUser(store_id=store.id, user_id=owner.id, role=UserRole.OWNER))
    await session.commit()
    return store


async def add_member(session, store: Store, user: User, role: UserRole = UserRole.MANAGER) -> StoreUser:
    membership = StoreUser(store_id=store.id, user_id=user.id, role=role)
    session.add(membership)
    await session.commit()
    return membership
