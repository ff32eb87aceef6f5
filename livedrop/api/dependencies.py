"""
API Dependencies

애플리케이션 시작 시 구성된 서비스 인스턴스를 라우트에 주입합니다.
HTTP 요청과 WebSocket 모두에서 사용할 수 있도록 HTTPConnection 을 받습니다.
"""

from starlette.requests import HTTPConnection

from livedrop.services.message_service import MessageLifecycleManager
from livedrop.services.object_store import ObjectStore
from livedrop.services.reaper import InactivityReaper
from livedrop.websockets.connection_manager import RoomRegistry


def get_message_service(connection: HTTPConnection) -> MessageLifecycleManager:
    return connection.app.state.message_service


def get_object_store(connection: HTTPConnection) -> ObjectStore:
    return connection.app.state.object_store


def get_room_registry(connection: HTTPConnection) -> RoomRegistry:
    return connection.app.state.room_registry


def get_reaper(connection: HTTPConnection) -> InactivityReaper:
    return connection.app.state.reaper
