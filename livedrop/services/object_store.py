"""
File object store layer.

Stores uploaded payloads and hands back a retrieval reference plus an opaque
deletion token. Upload and message creation are separate calls, so a payload
whose message is never created stays orphaned until removed by hand.
"""

import hashlib
import hmac
import re
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os

from livedrop.core.config import settings
from livedrop.core.errors import (
    InvalidDeletionTokenException,
    ObjectStoreException,
    field_validation_error,
)
from livedrop.core.logging import get_logger, log_file_operation

logger = get_logger(__name__)


# =============================================================================
# File Utilities
# =============================================================================

# 저장 파일명: uuid4 hex + (선택) 확장자
STORED_NAME_PATTERN = re.compile(r"^[0-9a-f]{32}(\.[a-z0-9]{1,10})?$")
EXTENSION_PATTERN = re.compile(r"^\.[a-z0-9]{1,10}$")


def get_file_extension(filename: str) -> str:
    """파일 확장자 추출 (안전하지 않은 확장자는 버림)"""
    extension = Path(filename).suffix.lower()
    return extension if EXTENSION_PATTERN.match(extension) else ""


def generate_stored_name(original_filename: str) -> str:
    """고유한 저장 파일명 생성"""
    return f"{uuid.uuid4().hex}{get_file_extension(original_filename)}"


def sign_stored_name(stored_name: str, secret_key: str) -> str:
    """저장 파일명에 대한 삭제 토큰 생성"""
    signature = hmac.new(
        secret_key.encode("utf-8"), stored_name.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"{stored_name}:{signature}"


def verify_deletion_token(token: str, secret_key: str) -> Optional[str]:
    """삭제 토큰 검증 후 저장 파일명 반환 (유효하지 않으면 None)"""
    if not isinstance(token, str) or ":" not in token:
        return None
    stored_name, _ = token.rsplit(":", 1)
    if not STORED_NAME_PATTERN.match(stored_name):
        return None
    if not hmac.compare_digest(token, sign_stored_name(stored_name, secret_key)):
        return None
    return stored_name


@dataclass(frozen=True)
class StoredObject:
    file_ref: str
    file_deletion_token: str
    file_name: str
    size: int


# =============================================================================
# Object Store
# =============================================================================

class ObjectStore(ABC):
    """Object store gateway contract."""

    max_upload_size: int = 50 * 1024 * 1024

    def validate_upload(self, filename: Optional[str], size: Optional[int]) -> None:
        """업로드 파일 검증"""
        if not filename:
            raise field_validation_error("file", "No file provided")

        if size is not None:
            if size == 0:
                raise field_validation_error("file", "File is empty", filename)
            if size > self.max_upload_size:
                raise field_validation_error(
                    "file",
                    f"File size exceeds maximum limit of {self.max_upload_size // (1024 * 1024)}MB",
                    size
                )

    @abstractmethod
    async def upload(self, filename: str, content: bytes, content_type: Optional[str] = None) -> StoredObject:
        """Store a payload and return its reference and deletion token."""

    @abstractmethod
    async def delete(self, file_deletion_token: str) -> bool:
        """Delete a payload. ``False`` when it was already gone.

        Raises ``ObjectStoreException`` when the payload could not be removed.
        """

    @abstractmethod
    def verify_reference(self, file_ref: str, file_deletion_token: str) -> bool:
        """Whether the token was issued by this store for exactly ``file_ref``."""


class LocalObjectStore(ObjectStore):
    """Stores payloads on the local filesystem under ``upload_dir``."""

    def __init__(
        self,
        upload_dir: Path,
        url_prefix: str = "/files",
        secret_key: str = "change-me-in-production",
        max_upload_size: int = 50 * 1024 * 1024,
    ):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.secret_key = secret_key
        self.max_upload_size = max_upload_size

    @classmethod
    def from_settings(cls) -> "LocalObjectStore":
        return cls(
            upload_dir=Path(settings.upload_dir),
            url_prefix=settings.file_url_prefix,
            secret_key=settings.secret_key,
            max_upload_size=settings.max_upload_size,
        )

    def ensure_upload_directory(self):
        """업로드 디렉토리가 존재하는지 확인하고 생성"""
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    async def upload(self, filename: str, content: bytes, content_type: Optional[str] = None) -> StoredObject:
        self.validate_upload(filename, len(content))
        self.ensure_upload_directory()

        stored_name = generate_stored_name(filename)
        file_path = self.upload_dir / stored_name

        try:
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            # 저장 실패 시 파일 삭제
            if file_path.exists():
                file_path.unlink()
            raise ObjectStoreException("upload", f"Failed to save file: {e}") from e

        stored = StoredObject(
            file_ref=f"{self.url_prefix}/{stored_name}",
            file_deletion_token=sign_stored_name(stored_name, self.secret_key),
            file_name=filename,
            size=len(content),
        )
        log_file_operation(logger, "upload", stored.file_ref, stored.size, content_type=content_type)
        return stored

    def verify_reference(self, file_ref: str, file_deletion_token: str) -> bool:
        stored_name = verify_deletion_token(file_deletion_token, self.secret_key)
        return stored_name is not None and file_ref == f"{self.url_prefix}/{stored_name}"

    async def delete(self, file_deletion_token: str) -> bool:
        stored_name = verify_deletion_token(file_deletion_token, self.secret_key)
        if stored_name is None:
            raise InvalidDeletionTokenException("delete")

        file_path = self.upload_dir / stored_name
        try:
            await aiofiles.os.remove(file_path)
        except FileNotFoundError:
            logger.info(f"Stored file already removed: {stored_name}")
            return False
        except OSError as e:
            raise ObjectStoreException("delete", f"Failed to delete file: {e}") from e

        log_file_operation(logger, "delete", f"{self.url_prefix}/{stored_name}")
        return True


# =============================================================================
# Deletion backlog
# =============================================================================

class FileDeletionBacklog:
    """삭제에 실패한 파일 토큰 대기열 (중복 제거, 최대 크기 제한)

    다음 정리(sweep) 시작 시 재시도됩니다. 가득 차면 가장 오래된 토큰을 버립니다.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._tokens: "OrderedDict[str, None]" = OrderedDict()

    def add(self, file_deletion_token: str):
        if file_deletion_token in self._tokens:
            return
        self._tokens[file_deletion_token] = None
        if len(self._tokens) > self.max_size:
            dropped, _ = self._tokens.popitem(last=False)
            logger.error(
                "File deletion backlog is full, dropping oldest token",
                extra={"event_type": "file_backlog_overflow", "dropped_token_prefix": dropped.split(":")[0]}
            )

    def drain(self) -> List[str]:
        tokens = list(self._tokens)
        self._tokens.clear()
        return tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, file_deletion_token: str) -> bool:
        return file_deletion_token in self._tokens
