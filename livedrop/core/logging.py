"""
구조화된 로깅 시스템

JSON 형식의 구조화된 로그를 제공하여 로그 분석과 모니터링을 용이하게 합니다.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional
from contextvars import ContextVar
from pathlib import Path

from livedrop.core.config import settings

# 컨텍스트 변수로 요청별 추적 정보 저장
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName',
}


class StructuredFormatter(logging.Formatter):
    """구조화된 JSON 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        # 기본 로그 정보
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        # 예외 정보 추가
        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        # 추가 데이터 (extra 필드)
        extra_data = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS and not key.startswith('_')
        }
        if extra_data:
            log_data["extra"] = extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


QUIET_LIBRARIES = ("uvicorn", "uvicorn.access", "motor", "pymongo", "redis")


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logging():
    """로깅 시스템 초기화

    콘솔 + app.log + error.log. 다시 호출하면 기존 루트 핸들러를 교체합니다.
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if settings.debug else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if settings.debug:
        # 개발 환경은 사람이 읽는 형식
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    else:
        console_handler.setFormatter(StructuredFormatter())

    root_logger.addHandler(console_handler)
    root_logger.addHandler(_file_handler(log_dir / "app.log", logging.INFO))
    root_logger.addHandler(_file_handler(log_dir / "error.log", logging.ERROR))

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """구조화된 로거 인스턴스 반환"""
    return logging.getLogger(name)


def set_request_context(request_id: str):
    """요청 컨텍스트 설정"""
    request_id_var.set(request_id)


def clear_request_context():
    """요청 컨텍스트 초기화"""
    request_id_var.set(None)


def log_api_call(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **extra
):
    """API 호출 로그"""
    logger.info(
        f"{method} {path} - {status_code}",
        extra={
            "event_type": "api_call",
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            **extra
        }
    )


def log_database_operation(
    logger: logging.Logger,
    operation: str,
    collection: str,
    duration_ms: Optional[float] = None,
    affected_rows: Optional[int] = None,
    **extra
):
    """데이터베이스 작업 로그"""
    logger.info(
        f"DB {operation} on {collection}",
        extra={
            "event_type": "database_operation",
            "operation": operation,
            "collection": collection,
            "duration_ms": duration_ms,
            "affected_rows": affected_rows,
            **extra
        }
    )


def log_websocket_event(
    logger: logging.Logger,
    event: str,
    connection_id: str,
    room_code: Optional[str] = None,
    **extra
):
    """WebSocket 이벤트 로그"""
    logger.info(
        f"WebSocket {event} - Connection {connection_id} in Room {room_code}",
        extra={
            "event_type": "websocket",
            "event": event,
            "connection_id": connection_id,
            "room_code": room_code,
            **extra
        }
    )


def log_file_operation(
    logger: logging.Logger,
    operation: str,
    file_ref: str,
    file_size: Optional[int] = None,
    **extra
):
    """파일 작업 로그"""
    logger.info(
        f"File {operation} - {file_ref}",
        extra={
            "event_type": "file_operation",
            "operation": operation,
            "file_ref": file_ref,
            "file_size": file_size,
            **extra
        }
    )


def log_sweep_result(
    logger: logging.Logger,
    deleted_count: int,
    file_deletions_attempted: int,
    rooms_cleaned: int,
    duration_ms: float,
    **extra
):
    """비활성 방 정리 결과 로그"""
    logger.info(
        f"Sweep finished - {deleted_count} messages from {rooms_cleaned} rooms",
        extra={
            "event_type": "inactivity_sweep",
            "deleted_count": deleted_count,
            "file_deletions_attempted": file_deletions_attempted,
            "rooms_cleaned": rooms_cleaned,
            "duration_ms": duration_ms,
            **extra
        }
    )
