"""
LiveDrop - FastAPI Application

방 코드로 모이는 임시 공유 공간: 텍스트/파일 전송, 실시간 브로드캐스트, 비활성 방 자동 정리
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator

from livedrop.api import include_routers
from livedrop.core.config import settings
from livedrop.core.logging import setup_logging, get_logger
from livedrop.database import init_databases, close_databases, get_redis
from livedrop.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from livedrop.middleware.logging_middleware import LoggingMiddleware
from livedrop.services.broadcast_relay import RedisBroadcastRelay
from livedrop.services.message_service import MessageLifecycleManager
from livedrop.services.object_store import FileDeletionBacklog, LocalObjectStore
from livedrop.services.reaper import InactivityReaper, ReaperScheduler
from livedrop.services.storage_gateway import InMemoryMessageStore, MongoMessageStore
from livedrop.websockets.connection_manager import RoomRegistry

logger = get_logger(__name__)


def build_services(app: FastAPI):
    """설정에 맞는 서비스 인스턴스를 구성하여 app.state 에 등록"""
    store = MongoMessageStore() if settings.storage_backend == "mongodb" else InMemoryMessageStore()
    object_store = LocalObjectStore.from_settings()
    registry = RoomRegistry(send_timeout=settings.websocket_send_timeout_seconds)
    backlog = FileDeletionBacklog()

    app.state.object_store = object_store
    app.state.room_registry = registry
    app.state.message_service = MessageLifecycleManager(
        store=store,
        object_store=object_store,
        registry=registry,
        backlog=backlog,
        max_text_length=settings.max_text_length,
    )
    app.state.reaper = InactivityReaper(
        store=store,
        object_store=object_store,
        inactivity_window=timedelta(minutes=settings.inactivity_window_minutes),
        backlog=backlog,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} starting up...")

    await init_databases()
    build_services(app)

    relay = None
    if settings.broadcast_backend == "redis":
        relay = RedisBroadcastRelay(get_redis(), settings.redis_channel, app.state.room_registry)
        await relay.start()
        app.state.room_registry.attach_relay(relay)

    scheduler = None
    if settings.cleanup_interval_seconds > 0:
        scheduler = ReaperScheduler(app.state.reaper, settings.cleanup_interval_seconds)
        await scheduler.start()

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")

    if scheduler:
        await scheduler.stop()
    if relay:
        app.state.room_registry.attach_relay(None)
        await relay.stop()

    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# Middleware
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

# Include routers
include_routers(app)

# Uploaded files
Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount(settings.file_url_prefix, StaticFiles(directory=settings.upload_dir), name="files")

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "livedrop.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
