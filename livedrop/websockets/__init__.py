"""
WebSocket 실시간 방 채널 모듈

주요 구성 요소:
- connection_manager: 방 멤버십과 브로드캐스트 (RoomRegistry)
- handlers: 클라이언트 프레임(join, ping) 처리
"""

from .connection_manager import (
    RoomRegistry,
    Connection,
    MESSAGE_RECEIVED,
    MESSAGE_DELETED,
)
from .handlers import WebSocketMessageHandler

__all__ = [
    "RoomRegistry",
    "Connection",
    "MESSAGE_RECEIVED",
    "MESSAGE_DELETED",
    "WebSocketMessageHandler",
]
