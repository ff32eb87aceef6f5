import logging
from livedrop.core.config import settings
from .mongodb import init_mongodb, close_mongo_connection, check_mongo_connection, get_database
from .redis import init_redis, close_redis, check_redis_connection, get_redis

logger = logging.getLogger(__name__)


async def init_databases():
    """Initialize the backends selected in settings"""
    try:
        if settings.storage_backend == "mongodb":
            await init_mongodb()
            logger.info("MongoDB initialization completed")

        if settings.broadcast_backend == "redis":
            await init_redis()
            logger.info("Redis initialization completed")

        logger.info("All databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    await close_mongo_connection()
    await close_redis()
    logger.info("All database connections closed")


async def check_database_health():
    """Check health of the configured backends

    Backends that are not in use report ``None``.
    """
    mongo_status = None
    redis_status = None

    if settings.storage_backend == "mongodb":
        mongo_status = await check_mongo_connection()
    if settings.broadcast_backend == "redis":
        redis_status = await check_redis_connection()

    return {
        "mongodb": mongo_status,
        "redis": redis_status,
        "overall": mongo_status is not False and redis_status is not False
    }

__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_database",
    "get_redis"
]
