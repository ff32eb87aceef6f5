"""
Redis 연결 설정 및 관리

여러 워커 프로세스 사이의 방 브로드캐스트 중계(pub/sub)에 사용합니다.
"""

from typing import Optional
import redis.asyncio as redis
from redis.exceptions import RedisError

from livedrop.core.config import settings
from livedrop.core.logging import get_logger

logger = get_logger(__name__)

redis_client: Optional[redis.Redis] = None


async def init_redis():
    """Redis 연결 초기화"""
    global redis_client

    try:
        redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,  # 자동으로 bytes를 string으로 디코딩
            encoding='utf-8'
        )

        # 연결 테스트
        await redis_client.ping()
        logger.info("Redis connection initialized successfully")

    except RedisError as e:
        logger.error(f"Redis initialization failed: {e}")
        raise


async def close_redis():
    """Redis 연결 종료"""
    global redis_client

    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


async def check_redis_connection() -> bool:
    """Redis 연결 상태 확인"""
    try:
        if redis_client:
            await redis_client.ping()
            return True
        return False
    except RedisError as e:
        logger.error(f"Redis connection check failed: {e}")
        return False


def get_redis() -> redis.Redis:
    """Redis 클라이언트 반환"""
    if redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis_client
