"""
Redis pub/sub 브로드캐스트 중계

여러 워커 프로세스가 각자 WebSocket 연결을 가지고 있을 때, 방 이벤트를
하나의 Redis 채널로 발행하고 각 프로세스의 단일 리스너가 자신의 로컬
연결에만 전달합니다. 발행 순서대로 하나씩 전달하므로 방 단위 순서가 유지됩니다.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from livedrop.core.logging import get_logger
from livedrop.websockets.connection_manager import RoomRegistry

logger = get_logger(__name__)


class RedisBroadcastRelay:
    """방 이벤트를 Redis 채널로 발행하고 수신하여 로컬 레지스트리에 전달"""

    def __init__(self, redis_client: redis.Redis, channel: str, registry: RoomRegistry):
        self.redis = redis_client
        self.channel = channel
        self.registry = registry
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self._pubsub = None

    async def start(self):
        """구독 시작"""
        if self.running:
            logger.warning("Broadcast relay is already running")
            return

        self.running = True
        self._pubsub = self.redis.pubsub()
        await self._pubsub.subscribe(self.channel)
        self.task = asyncio.create_task(self._listen())
        logger.info(f"Broadcast relay subscribed to {self.channel}")

    async def stop(self):
        """구독 중지"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except RedisError as e:
                logger.error(f"Error closing pubsub: {e}")
            self._pubsub = None
        logger.info("Broadcast relay stopped")

    async def publish(self, room_code: str, event: str, payload: Dict[str, Any]) -> None:
        """이벤트 발행

        Redis 가 응답하지 않으면 이 프로세스의 연결에만 직접 전달합니다.
        """
        envelope = json.dumps({"room_code": room_code, "event": event, "payload": payload})
        try:
            await self.redis.publish(self.channel, envelope)
        except RedisError as e:
            logger.error(
                f"Failed to publish {event} for room {room_code}, delivering locally only: {e}",
                extra={"event_type": "relay_publish_failed", "room_code": room_code}
            )
            await self.registry.deliver(room_code, event, payload)

    async def _listen(self):
        try:
            async for message in self._pubsub.listen():
                if not self.running:
                    break
                if message.get("type") != "message":
                    continue
                await self.dispatch(message["data"])

        except asyncio.CancelledError:
            logger.info("Broadcast relay cancelled")
            raise

        except RedisError as e:
            logger.error(f"Broadcast relay listener stopped: {e}", exc_info=True)

    async def dispatch(self, raw: Any) -> int:
        """수신한 봉투를 로컬 방 멤버에게 전달"""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")

        try:
            envelope = json.loads(raw)
            room_code = envelope["room_code"]
            event = envelope["event"]
            payload = envelope["payload"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed relay envelope: {e}")
            return 0

        return await self.registry.deliver(room_code, event, payload)
