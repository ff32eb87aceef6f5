"""
MongoDB (Motor + Beanie) 연결 관리

메시지 컬렉션 하나만 사용합니다. ``storage_backend="mongodb"`` 일 때만 초기화됩니다.
"""

import logging
from typing import List, Optional, Type

from beanie import Document, init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from livedrop.core.config import settings
from livedrop.models.messages import MessageDocument

logger = logging.getLogger(__name__)

client: Optional[AsyncIOMotorClient] = None
database: Optional[AsyncIOMotorDatabase] = None

DOCUMENT_MODELS: List[Type[Document]] = [
    MessageDocument,
]


async def init_mongodb():
    """Motor 클라이언트를 만들고 Beanie 문서 모델과 인덱스를 등록"""
    global client, database

    client = AsyncIOMotorClient(
        settings.mongo_url,
        tz_aware=True,
        maxPoolSize=20,
        serverSelectionTimeoutMS=5000,
    )
    database = client[settings.mongodb_db_name]

    try:
        await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    except PyMongoError as e:
        logger.error(f"Failed to initialize MongoDB at {settings.mongo_url}: {e}")
        await close_mongo_connection()
        raise

    logger.info(f"MongoDB initialized (database={settings.mongodb_db_name})")


async def check_mongo_connection() -> bool:
    """MongoDB ping"""
    if client is None:
        return False
    try:
        await client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.error(f"MongoDB connection check failed: {e}")
        return False


async def close_mongo_connection():
    """MongoDB 연결 종료"""
    global client, database
    if client is not None:
        client.close()
        client = None
        database = None
        logger.info("MongoDB connection closed")


def get_database() -> AsyncIOMotorDatabase:
    """현재 데이터베이스 반환"""
    if database is None:
        raise RuntimeError("MongoDB not initialized. Call init_mongodb() first.")
    return database
