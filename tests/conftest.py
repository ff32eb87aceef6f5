import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, List, Optional

# 앱 모듈을 import 하기 전에 테스트용 백엔드로 설정
_TEST_ROOT = tempfile.mkdtemp(prefix="livedrop-tests-")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("BROADCAST_BACKEND", "memory")
os.environ.setdefault("CLEANUP_INTERVAL_SECONDS", "0")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TEST_ROOT, "uploads"))
os.environ.setdefault("LOG_DIR", os.path.join(_TEST_ROOT, "logs"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from livedrop.api.dependencies import (
    get_message_service,
    get_object_store,
    get_reaper,
    get_room_registry,
)
from livedrop.main import app
from livedrop.services.message_service import MessageLifecycleManager
from livedrop.services.object_store import FileDeletionBacklog, LocalObjectStore
from livedrop.services.reaper import InactivityReaper
from livedrop.services.storage_gateway import InMemoryMessageStore
from livedrop.websockets.connection_manager import RoomRegistry


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """테스트용 시계 (직접 시간을 진행)"""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class FakeConnection:
    """send_json 으로 받은 프레임을 기록하는 WebSocket 대역"""

    def __init__(self, name: str = "conn", fail: bool = False, delay: float = 0):
        self.name = name
        self.fail = fail
        self.delay = delay
        self.sent: List[Any] = []
        self.closed = False
        self.close_code: Optional[int] = None

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.closed = True
        self.close_code = code

    async def send_json(self, data: Any, mode: str = "text") -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError(f"{self.name} is closed")
        self.sent.append(data)

    def frames(self, frame_type: Optional[str] = None) -> List[Any]:
        if frame_type is None:
            return list(self.sent)
        return [frame for frame in self.sent if frame.get("type") == frame_type]

    def __repr__(self):
        return f"FakeConnection({self.name})"


@pytest.fixture
def make_connection():
    """FakeConnection 생성 팩토리"""
    return FakeConnection


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryMessageStore:
    return InMemoryMessageStore(clock=clock)


@pytest.fixture
def object_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(
        upload_dir=tmp_path / "uploads",
        url_prefix="/files",
        secret_key="test-secret-key",
        max_upload_size=1024 * 1024,
    )


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry(send_timeout=1.0)


@pytest.fixture
def backlog() -> FileDeletionBacklog:
    return FileDeletionBacklog()


@pytest.fixture
def message_service(store, object_store, registry, backlog) -> MessageLifecycleManager:
    return MessageLifecycleManager(
        store=store,
        object_store=object_store,
        registry=registry,
        backlog=backlog,
        max_text_length=100,
    )


@pytest.fixture
def reaper(store, object_store, backlog, clock) -> InactivityReaper:
    return InactivityReaper(
        store=store,
        object_store=object_store,
        inactivity_window=timedelta(hours=2),
        backlog=backlog,
        clock=clock,
    )


@pytest.fixture
def app_object_store() -> LocalObjectStore:
    """정적 파일 경로와 같은 디렉토리를 쓰는 파일 저장소"""
    store = LocalObjectStore.from_settings()
    store.ensure_upload_directory()
    return store


@pytest_asyncio.fixture
async def client(store, app_object_store, registry, backlog, clock) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트 (인메모리 백엔드 주입)"""
    service = MessageLifecycleManager(
        store=store,
        object_store=app_object_store,
        registry=registry,
        backlog=backlog,
    )
    sweeper = InactivityReaper(
        store=store,
        object_store=app_object_store,
        inactivity_window=timedelta(hours=2),
        backlog=backlog,
        clock=clock,
    )

    app.dependency_overrides[get_message_service] = lambda: service
    app.dependency_overrides[get_object_store] = lambda: app_object_store
    app.dependency_overrides[get_room_registry] = lambda: registry
    app.dependency_overrides[get_reaper] = lambda: sweeper

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
