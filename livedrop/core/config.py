"""
LiveDrop Configuration

환경 변수를 통한 설정 관리
"""

from typing import List, Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """LiveDrop 설정"""

    # Application
    app_name: str = "LiveDrop"
    version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Message storage
    storage_backend: Literal["mongodb", "memory"] = "mongodb"
    mongo_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "livedrop"

    # Broadcast fan-out
    broadcast_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379"
    redis_channel: str = "livedrop:rooms"

    # File storage
    upload_dir: str = "uploads"
    file_url_prefix: str = "/files"
    max_upload_size: int = 50 * 1024 * 1024  # 50MB
    secret_key: str = "change-me-in-production"

    # Room expiry
    inactivity_window_minutes: int = 120
    cleanup_interval_seconds: int = 0  # 0이면 외부 스케줄러(GET /api/cleanup)만 사용

    # WebSocket
    websocket_send_timeout_seconds: float = 5.0

    # Messages
    max_text_length: int = 20000

    # Logging
    log_dir: str = "logs"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # 추가 환경변수 무시


settings = Settings()
