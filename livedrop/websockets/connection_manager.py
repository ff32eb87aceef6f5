import asyncio
import logging
import weakref
from typing import Any, Dict, List, Optional, Protocol, Set

from starlette import status

from livedrop.core.logging import log_websocket_event

logger = logging.getLogger(__name__)

# 서버 -> 클라이언트 이벤트 이름
MESSAGE_RECEIVED = "message-received"
MESSAGE_DELETED = "message-deleted"


class Connection(Protocol):
    """브로드캐스트 대상 연결 (FastAPI WebSocket 호환)"""

    async def send_json(self, data: Any, mode: str = "text") -> None:
        ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        ...


class BroadcastRelay(Protocol):
    async def publish(self, room_code: str, event: str, payload: Dict[str, Any]) -> None:
        ...


def connection_label(connection: Connection) -> str:
    return f"conn-{id(connection):x}"


class RoomRegistry:
    """
    방 코드별 실시간 연결 관리 및 브로드캐스트

    메시지 데이터는 갖지 않고 멤버십과 fan-out 만 담당합니다.
    방마다 별도의 Lock 으로 같은 방에 대한 브로드캐스트 순서(FIFO)를 보장하며,
    서로 다른 방끼리는 서로를 기다리지 않습니다.
    """

    def __init__(self, send_timeout: float = 5.0):
        # 방별 연결 그룹: {room_code: {connection}}
        self.room_connections: Dict[str, Set[Connection]] = {}
        # 연결별 참여 방: {connection: {room_code}}
        self.connection_rooms: Dict[Connection, Set[str]] = {}
        self.send_timeout = send_timeout
        # 사용 중인 Lock 만 유지됨 (사용처가 없으면 자동 정리)
        self._room_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._relay: Optional[BroadcastRelay] = None

    def attach_relay(self, relay: Optional[BroadcastRelay]):
        """다중 프로세스 중계기 연결 (None 이면 로컬 전달만 사용)"""
        self._relay = relay

    def _room_lock(self, room_code: str) -> asyncio.Lock:
        lock = self._room_locks.get(room_code)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[room_code] = lock
        return lock

    async def join(self, connection: Connection, room_code: str) -> bool:
        """연결을 방에 등록합니다. 이미 멤버였다면 False."""
        members = self.room_connections.setdefault(room_code, set())
        if connection in members:
            return False

        members.add(connection)
        self.connection_rooms.setdefault(connection, set()).add(room_code)

        log_websocket_event(
            logger, "join", connection_label(connection), room_code,
            online_count=len(members)
        )
        return True

    async def leave(self, connection: Connection) -> List[str]:
        """연결을 참여한 모든 방에서 제거합니다. 여러 번 호출해도 안전합니다."""
        room_codes = self.connection_rooms.pop(connection, set())

        for room_code in room_codes:
            members = self.room_connections.get(room_code)
            if members is None:
                continue
            members.discard(connection)

            # 방에 연결이 없으면 방 자체를 제거
            if not members:
                del self.room_connections[room_code]

            log_websocket_event(logger, "leave", connection_label(connection), room_code)

        return sorted(room_codes)

    async def broadcast(self, room_code: str, event: str, payload: Dict[str, Any]) -> None:
        """방의 모든 연결에 이벤트를 브로드캐스트합니다.

        중계기가 연결되어 있으면 중계기를 거쳐 모든 프로세스의 로컬 연결에 전달됩니다.
        """
        if self._relay is not None:
            await self._relay.publish(room_code, event, payload)
            return

        await self.deliver(room_code, event, payload)

    async def deliver(self, room_code: str, event: str, payload: Dict[str, Any]) -> int:
        """이 프로세스의 방 멤버에게 이벤트를 전달하고 전달 성공 수를 반환합니다.

        연결당 호출 1회당 최대 한 번 전송하며, 한 연결의 실패는 다른 연결에 영향을 주지 않습니다.
        """
        frame = {"type": event, "data": payload}

        async with self._room_lock(room_code):
            members = list(self.room_connections.get(room_code, ()))
            if not members:
                return 0

            results = await asyncio.gather(
                *(self._send(connection, room_code, frame) for connection in members)
            )

        failed = [connection for connection, ok in zip(members, results) if not ok]

        # 전송에 실패한 연결은 방에서 제거하고 소켓을 닫아 재접속(join + 히스토리 재조회)을 유도
        for connection in failed:
            await self.evict(connection, room_code)

        return len(members) - len(failed)

    async def evict(self, connection: Connection, room_code: Optional[str] = None):
        """연결을 모든 방에서 제거하고 닫습니다.

        이후의 이벤트를 조용히 놓치지 않도록, 클라이언트는 끊김을 감지하고 다시 join 합니다.
        """
        await self.leave(connection)

        try:
            await asyncio.wait_for(
                connection.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="delivery failed"),
                timeout=self.send_timeout
            )
        except Exception as e:
            logger.debug(f"Closing {connection_label(connection)} after failed delivery: {e!r}")

        log_websocket_event(logger, "evicted", connection_label(connection), room_code)

    async def _send(self, connection: Connection, room_code: str, frame: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(connection.send_json(frame), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.warning(
                f"Dropped {frame['type']} delivery to {connection_label(connection)} in room {room_code}: {e!r}",
                extra={"event_type": "delivery_dropped", "room_code": room_code}
            )
            return False

    def get_room_members(self, room_code: str) -> List[Connection]:
        """방에 연결된 연결 목록을 반환합니다."""
        return list(self.room_connections.get(room_code, ()))

    def get_member_count(self, room_code: str) -> int:
        """방의 연결 수를 반환합니다."""
        return len(self.room_connections.get(room_code, ()))

    def get_connection_rooms(self, connection: Connection) -> List[str]:
        """연결이 참여한 방 코드 목록을 반환합니다."""
        return sorted(self.connection_rooms.get(connection, ()))

    def is_member(self, connection: Connection, room_code: str) -> bool:
        return connection in self.room_connections.get(room_code, ())

    def get_active_room_count(self) -> int:
        return len(self.room_connections)
