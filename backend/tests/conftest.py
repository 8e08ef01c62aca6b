import asyncio

import pytest
import socketio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftio.main import app
from draftio.db.database import build_engine, create_tables, get_db
from draftio.core.security import create_access_token


@pytest.fixture
async def test_engine(tmp_path):
    # On-disk SQLite per test so the app's request sessions and the test's
    # own session see the same data
    engine = build_engine(f"sqlite:///{tmp_path / 'test_chat.db'}")
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_session(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def override_get_db(test_session_factory):
    """Point the app's get_db dependency at the per-test engine."""
    async def _override_get_db():
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_get_db):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def token_for():
    def _token_for(user_id: str, username: str = None) -> str:
        data = {"sub": user_id}
        if username:
            data["username"] = username
        return create_access_token(data)
    return _token_for


@pytest.fixture
def auth_headers(token_for):
    def _auth_headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {token_for(user_id)}"}
    return _auth_headers


class FakeSocketClient:
    """Stands in for socketio.AsyncClient: records calls, lets tests push server events."""

    def __init__(self, fail_connects: int = 0, **kwargs):
        self.kwargs = kwargs
        self.fail_connects = fail_connects
        self.handlers = {}
        self.connected = False
        self.sid = None
        self.connect_calls = []
        self.emitted = []

    def on(self, event, handler):
        self.handlers[event] = handler

    async def connect(self, url, **kwargs):
        self.connect_calls.append((url, kwargs))
        # Yield like a real handshake would
        await asyncio.sleep(0)
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise socketio.exceptions.ConnectionError("Connection refused by the server")
        self.connected = True
        self.sid = f"sid-{len(self.connect_calls)}"
        await self.handlers["connect"]()

    async def disconnect(self):
        if not self.connected:
            return
        self.connected = False
        await self.handlers["disconnect"]("client disconnect")

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def server_event(self, event, data=None):
        await self.handlers[event](data)

    async def drop(self, reason: str = "transport close"):
        """Simulate the transport going away."""
        self.connected = False
        await self.handlers["disconnect"](reason)

    async def kick(self):
        """Simulate the server closing the session on purpose."""
        await self.drop("server disconnect")


class FakeSocketFactory:
    def __init__(self, fail_connects: int = 0):
        self.fail_connects = fail_connects
        self.clients = []

    def __call__(self, **kwargs):
        client = FakeSocketClient(self.fail_connects, **kwargs)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeSocketClient:
        return self.clients[-1]


async def wait_until(predicate, timeout: float = 1.0, interval: float = 0.005):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


@pytest.fixture
def socket_factory():
    """Factory handed to RelayClient in place of socketio.AsyncClient."""
    return FakeSocketFactory()


@pytest.fixture(name="wait_until")
def wait_until_fixture():
    return wait_until
