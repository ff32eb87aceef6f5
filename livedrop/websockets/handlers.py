import logging
from typing import Any, Dict

from livedrop.websockets.connection_manager import Connection, RoomRegistry, connection_label

logger = logging.getLogger(__name__)


class WebSocketMessageHandler:
    """WebSocket 클라이언트 프레임 처리 핸들러

    클라이언트 -> 서버 프레임:
        {"type": "join", "room_code": "..."}
        {"type": "ping"}
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    async def handle_message(self, connection: Connection, data: Any):
        """
        WebSocket으로 받은 프레임을 처리합니다.

        Args:
            connection: WebSocket 연결 객체
            data: 클라이언트에서 전송한 JSON 데이터
        """
        if not isinstance(data, dict):
            await self._send_error(connection, "invalid_frame", "Frames must be JSON objects")
            return

        message_type = data.get("type")

        if message_type == "join":
            await self._handle_join(connection, data)
        elif message_type == "ping":
            await connection.send_json({"type": "pong"})
        else:
            logger.warning(f"Unknown frame type: {message_type} from {connection_label(connection)}")
            await self._send_error(connection, "unknown_type", f"Unknown frame type: {message_type}")

    async def _handle_join(self, connection: Connection, data: Dict[str, Any]):
        """방 참여를 처리합니다. 같은 방에 다시 참여해도 중복 전달되지 않습니다."""
        room_code = data.get("room_code")
        if not isinstance(room_code, str) or not room_code.strip():
            await self._send_error(connection, "validation_error", "room_code is required")
            return

        await self.registry.join(connection, room_code)

        await connection.send_json({
            "type": "joined",
            "room_code": room_code,
            "online_count": self.registry.get_member_count(room_code)
        })

    @staticmethod
    async def _send_error(connection: Connection, error_code: str, message: str):
        await connection.send_json({
            "type": "error",
            "error_code": error_code,
            "message": message
        })
