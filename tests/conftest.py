import asyncio
import json
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Banco SQLite isolado para os testes; precisa vir antes de importar servicebell
_DB_DIR = tempfile.mkdtemp(prefix="servicebell-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["REDIS_EVENTS_ENABLED"] = "false"

import pytest  # noqa: E402

from servicebell import crud  # noqa: E402
from servicebell.database import AsyncSessionLocal, engine  # noqa: E402
from servicebell.db import models  # noqa: E402,F401
from servicebell.db.base_class import Base  # noqa: E402
from servicebell.db.models.user import UserRole  # noqa: E402
from servicebell.schemas.restaurant import RestaurantCreate  # noqa: E402
from servicebell.services.broadcast import BroadcastHub, ClientType  # noqa: E402
from servicebell.services.request_service import RequestService  # noqa: E402
from servicebell.services.session_manager import SessionManager  # noqa: E402

SESSION_SECONDS = 3600


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_database():
    asyncio.run(_reset_schema())
    yield


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSocket:
    """Faz o papel de um WebSocket: guarda tudo que o hub envia."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(json.loads(data))

    @property
    def types(self):
        return [message["type"] for message in self.messages]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hub():
    return BroadcastHub()


@pytest.fixture
def listener(hub):
    socket = RecordingSocket()
    hub.register(socket, client_type=ClientType.ADMIN)
    return socket


@pytest.fixture
def sessions(hub, clock):
    return SessionManager(hub, duration_seconds=SESSION_SECONDS, clock=clock)


@pytest.fixture
def requests_service(hub, clock):
    return RequestService(hub, clock=clock)


@pytest.fixture
async def db():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def table(db):
    owner = await crud.user.create(db, username="owner", password="secret123", role=UserRole.OWNER)
    restaurant = await crud.restaurant.create(db, obj_in=RestaurantCreate(name="Bistrô"), owner_id=owner.id)
    table = await crud.table.create(db, restaurant_id=restaurant.id, name="Mesa 1")
    await db.commit()
    return table
