import os

# IMPORTANT: settings are read once at import; set env before importing alumnet
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdef0123456789abcdef")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from alumnet.config import get_settings
from alumnet.db import get_db
from alumnet.main import app
from alumnet.models import Base
from alumnet.services.mailer import get_notifier


class FakeNotifier:
    """Records every send; `deliver=False` simulates an unreachable transport."""

    def __init__(self, deliver: bool = True, raises: bool = False):
        self.deliver = deliver
        self.raises = raises
        self.sent: list[tuple[str, str]] = []

    async def send_otp_email(self, to: str, code: str, *, expire_minutes: int) -> bool:
        self.sent.append((to, code))
        if self.raises:
            raise ConnectionError("smtp unreachable")
        return self.deliver

    def last_code(self, to: str) -> str:
        return [c for t, c in self.sent if t == to][-1]


# Fresh sqlite file per test so every session gets its own connection.
@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def settings():
    return get_settings()


# Rate limits talk to Redis; stub them where the router imported them.
@pytest.fixture(autouse=True)
def _stub_rate_limits(monkeypatch):
    import alumnet.api.routers.auth as auth_router

    async def _noop(*args, **kwargs):
        return None

    monkeypatch.setattr(auth_router, "limit_otp_request", _noop)
    monkeypatch.setattr(auth_router, "limit_otp_verify", _noop)
    monkeypatch.setattr(auth_router, "limit_login", _noop)
    yield


@pytest.fixture(autouse=True)
def _uploads_in_tmp(monkeypatch, tmp_path, settings):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    yield


@pytest_asyncio.fixture
async def client(session_factory, notifier):
    async def _get_db():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ---------- helpers ----------
async def signup(client, notifier, email: str, username: str, user_type: str = "student", password: str = "pw123456"):
    r = await client.post("/api/auth/send-otp", json={"email": email})
    assert r.status_code == 200
    code = notifier.last_code(email.strip().lower())
    r = await client.post(
        "/api/auth/verify-otp",
        json={"email": email, "otp": code, "username": username, "password": password, "userType": user_type},
    )
    assert r.status_code == 201, r.text
    return r.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
