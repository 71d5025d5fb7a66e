from datetime import datetime, timedelta
from typing import Optional

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel.ext.asyncio.session import AsyncSession

from suitsync.accounts.schemas import DeviceInfo, LightspeedUserData, SessionContext, SessionRead
from suitsync.accounts.services import SessionLifecycleService
from suitsync.accounts.utils import create_session_token
from suitsync.dependencies.db import get_session_dep
from suitsync.infrastructure.database import init_db
from suitsync.infrastructure.server_bridge import ServerBridge
from suitsync.main import app


class FakeLightspeed:
    """
    Scripted stand-in for the Lightspeed API behind an httpx.MockTransport.

    Responses queued for (method, path) are served in order; the last one
    repeats. Unscripted paths answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method: str, path: str, status: int = 200, json=None, headers=None, exc: Optional[Exception] = None):
        self.routes.setdefault((method.upper(), path), []).append((status, json, headers, exc))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "not found"})
        status, json, headers, exc = queue.pop(0) if len(queue) > 1 else queue[0]
        if exc is not None:
            raise exc
        return httpx.Response(status, json=json, headers=headers)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def lifecycle(db_session):
    return SessionLifecycleService(db_session)


@pytest.fixture
def lightspeed():
    return FakeLightspeed()


@pytest_asyncio.fixture
async def lightspeed_http(lightspeed):
    async with httpx.AsyncClient(transport=lightspeed.transport()) as http:
        yield http


@pytest.fixture
def user_data():
    def _make(
        lightspeed_user_id: str = "101",
        name: str = "Ada Fitter",
        access_token: str = "ls-access",
        refresh_token: Optional[str] = "ls-refresh",
        expires_in: timedelta = timedelta(hours=1),
    ) -> LightspeedUserData:
        return LightspeedUserData(
            lightspeed_user_id=lightspeed_user_id,
            lightspeed_employee_id=lightspeed_user_id,
            email=f"user{lightspeed_user_id}@example.com",
            name=name,
            role="sales",
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=datetime.utcnow() + expires_in,
            domain_prefix="suitshop",
        )

    return _make


@pytest.fixture
def login(lifecycle, user_data):
    async def _login(
        lightspeed_user_id: str = "101",
        browser_session_id: Optional[str] = None,
        device_type: str = "desktop",
        **kwargs,
    ) -> SessionRead:
        return await lifecycle.create_or_update_user_session(
            user_data(lightspeed_user_id, **kwargs),
            DeviceInfo(user_agent="pytest", ip_address="127.0.0.1", device_type=device_type),
            browser_session_id,
        )

    return _login


@pytest.fixture
def auth_headers():
    def _headers(session: SessionRead, selected_user_id: Optional[int] = None) -> dict:
        token = create_session_token(
            SessionContext(
                user_id=session.user_id,
                browser_session_id=session.browser_session_id,
                lightspeed_user_id=session.lightspeed_user_id,
                selected_user_id=selected_user_id,
            )
        )["token"]
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def server_bridge():
    return ServerBridge(None)


@pytest_asyncio.fixture
async def client(db_session, lightspeed_http, server_bridge):
    """API client over the app, with the test database and a faked Lightspeed."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session_dep] = override_get_session
    app.state.lightspeed_http = lightspeed_http
    app.state.server_bridge = server_bridge

    # foreign exceptions become plain 500s instead of propagating into the test
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def cookie_token():
    """Value of the session cookie set by a response."""

    def _token(response: httpx.Response) -> str:
        header = response.headers["set-cookie"]
        return header.split(";", 1)[0].split("=", 1)[1]

    return _token
