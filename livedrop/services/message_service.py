"""
Message lifecycle service.

Validates and accepts submissions, persists them through the storage gateway
and then broadcasts them to the room. Deletion runs the same path in reverse.
A broadcast is only issued after the storage gateway has confirmed the write,
so clients can treat broadcasts and history fetches as the single source of
truth.
"""

from typing import List, Optional, Union

from livedrop.core.errors import (
    InvalidDeletionTokenException,
    ValidationException,
    ValidationError,
    message_not_found_error,
)
from livedrop.core.logging import get_logger
from livedrop.schemas.message import MessageKind, MessageRecord
from livedrop.services.object_store import FileDeletionBacklog, ObjectStore
from livedrop.services.storage_gateway import MessageStore
from livedrop.websockets.connection_manager import (
    MESSAGE_DELETED,
    MESSAGE_RECEIVED,
    RoomRegistry,
)

logger = get_logger(__name__)

VALID_KINDS = {kind.value for kind in MessageKind}


def validate_room_code(room_code: Optional[str]) -> str:
    """방 코드 검증 (빈 값 불가, 값 자체는 그대로 키로 사용)"""
    if not isinstance(room_code, str) or not room_code.strip():
        raise ValidationException(
            "room_code is required",
            validation_errors=[
                ValidationError(field="room_code", message="This field is required", value=room_code)
            ]
        )
    return room_code


def _file_display_name(file_ref: str) -> str:
    return file_ref.rstrip("/").rsplit("/", 1)[-1] or "file"


class MessageLifecycleManager:
    """메시지 생성/조회/삭제와 브로드캐스트를 담당"""

    def __init__(
        self,
        store: MessageStore,
        object_store: ObjectStore,
        registry: RoomRegistry,
        backlog: Optional[FileDeletionBacklog] = None,
        max_text_length: int = 20000,
    ):
        self.store = store
        self.object_store = object_store
        self.registry = registry
        self.backlog = backlog if backlog is not None else FileDeletionBacklog()
        self.max_text_length = max_text_length

    # =========================================================================
    # Submit
    # =========================================================================

    def _validate_submission(
        self,
        room_code: Optional[str],
        kind: Union[MessageKind, str, None],
        content: Optional[str],
        file_ref: Optional[str],
        file_deletion_token: Optional[str],
    ) -> MessageKind:
        errors: List[ValidationError] = []

        if not isinstance(room_code, str) or not room_code.strip():
            errors.append(ValidationError(field="room_code", message="This field is required", value=room_code))

        kind_value = kind.value if isinstance(kind, MessageKind) else kind
        if kind_value not in VALID_KINDS:
            errors.append(
                ValidationError(field="kind", message="Must be one of: file, text", value=kind_value)
            )
        elif kind_value == MessageKind.TEXT.value:
            if not isinstance(content, str) or not content.strip():
                errors.append(ValidationError(field="content", message="Text messages cannot be empty"))
            elif len(content) > self.max_text_length:
                errors.append(
                    ValidationError(
                        field="content",
                        message=f"Must be no more than {self.max_text_length} characters long",
                        value=len(content)
                    )
                )
            for field, value in (("file_ref", file_ref), ("file_deletion_token", file_deletion_token)):
                if value is not None:
                    errors.append(ValidationError(field=field, message="Only allowed for file messages"))
        else:
            missing = False
            for field, value in (("file_ref", file_ref), ("file_deletion_token", file_deletion_token)):
                if not isinstance(value, str) or not value.strip():
                    missing = True
                    errors.append(
                        ValidationError(field=field, message="Required for file messages; upload the file first")
                    )
            # 업로드 응답의 file_ref / 토큰 쌍만 허용
            if not missing and not self.object_store.verify_reference(file_ref, file_deletion_token):
                errors.append(
                    ValidationError(
                        field="file_deletion_token",
                        message="Does not match an uploaded file; use the values returned by upload"
                    )
                )

        if errors:
            raise ValidationException("Message validation failed", validation_errors=errors)

        return MessageKind(kind_value)

    async def submit(
        self,
        room_code: Optional[str],
        kind: Union[MessageKind, str, None],
        content: Optional[str],
        file_ref: Optional[str] = None,
        file_deletion_token: Optional[str] = None,
    ) -> MessageRecord:
        """
        메시지를 저장하고 방에 브로드캐스트합니다.

        Args:
            room_code: 방 코드
            kind: text 또는 file
            content: 텍스트 본문 또는 파일 표시 이름 (file 은 비어 있으면 file_ref 에서 추출)
            file_ref: 업로드 응답의 파일 경로 (file 전용)
            file_deletion_token: 업로드 응답의 삭제 토큰 (file 전용)

        Returns:
            MessageRecord: 저장된 메시지 (응답은 정보용이며 UI 는 브로드캐스트를 기준으로 그립니다)

        Raises:
            ValidationException: 입력이 유효하지 않은 경우 (저장/브로드캐스트 없음)
            PersistenceException: 저장소 장애 (브로드캐스트 없음)
        """
        message_kind = self._validate_submission(room_code, kind, content, file_ref, file_deletion_token)

        if message_kind == MessageKind.FILE and (not isinstance(content, str) or not content.strip()):
            content = _file_display_name(file_ref)

        record = await self.store.append(
            room_code=room_code,
            kind=message_kind,
            content=content,
            file_ref=file_ref if message_kind == MessageKind.FILE else None,
            file_deletion_token=file_deletion_token if message_kind == MessageKind.FILE else None,
        )

        await self.registry.broadcast(
            room_code, MESSAGE_RECEIVED, record.to_public().model_dump(mode="json")
        )

        logger.info(
            f"Message {record.id} ({record.kind.value}) posted to room {room_code}",
            extra={"event_type": "message_created", "message_id": record.id, "room_code": room_code}
        )
        return record

    # =========================================================================
    # History
    # =========================================================================

    async def retrieve_history(self, room_code: Optional[str]) -> List[MessageRecord]:
        """방의 전체 메시지를 created_at 오름차순으로 반환합니다. 빈 방은 빈 목록입니다."""
        room_code = validate_room_code(room_code)
        return await self.store.find_by_room(room_code)

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete(self, message_id: str) -> str:
        """
        메시지와 (file 인 경우) 저장된 파일을 삭제하고 방에 삭제 이벤트를 브로드캐스트합니다.

        파일 삭제 실패는 로그와 백로그로 넘기고 메시지 삭제를 막지 않습니다.

        Raises:
            ResourceNotFoundException: 메시지가 없는 경우 (브로드캐스트 없음)
            PersistenceException: 저장소 장애 (브로드캐스트 없음)
        """
        record = await self.store.find_by_id(message_id)
        if record is None:
            raise message_not_found_error(message_id)

        if record.kind == MessageKind.FILE and record.file_deletion_token:
            await self._delete_stored_file(record)

        deleted = await self.store.delete_by_id(message_id)
        if not deleted:
            # 다른 삭제 요청이나 정리 작업이 먼저 지운 경우
            raise message_not_found_error(message_id)

        await self.registry.broadcast(record.room_code, MESSAGE_DELETED, {"message_id": message_id})

        logger.info(
            f"Message {message_id} deleted from room {record.room_code}",
            extra={"event_type": "message_deleted", "message_id": message_id, "room_code": record.room_code}
        )
        return message_id

    async def _delete_stored_file(self, record: MessageRecord):
        try:
            await self.object_store.delete(record.file_deletion_token)
        except InvalidDeletionTokenException:
            # 재시도해도 성공할 수 없으므로 대기열에 넣지 않음
            logger.error(
                f"Stored file for message {record.id} has an invalid deletion token, skipping",
                extra={"event_type": "file_delete_invalid_token", "message_id": record.id, "file_ref": record.file_ref}
            )
        except Exception as e:
            logger.warning(
                f"Stored file for message {record.id} could not be deleted, queued for retry: {e}",
                extra={"event_type": "file_delete_failed", "message_id": record.id, "file_ref": record.file_ref},
                exc_info=True
            )
            self.backlog.add(record.file_deletion_token)
