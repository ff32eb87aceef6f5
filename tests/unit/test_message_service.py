import pytest
from unittest.mock import AsyncMock

from livedrop.core.errors import (
    ObjectStoreException,
    PersistenceException,
    ResourceNotFoundException,
    ValidationException,
)
from livedrop.schemas.message import MessageKind
from livedrop.services.message_service import validate_room_code
from livedrop.websockets.connection_manager import MESSAGE_DELETED, MESSAGE_RECEIVED


async def _upload(object_store, name="notes.txt", content=b"hello file"):
    return await object_store.upload(name, content, "text/plain")


class TestValidateRoomCode:
    """방 코드 검증 테스트"""

    def test_accepts_any_non_empty_code(self):
        assert validate_room_code("ABCDEF") == "ABCDEF"
        assert validate_room_code("abc def") == "abc def"

    @pytest.mark.parametrize("room_code", [None, "", "   ", 123])
    def test_rejects_missing_code(self, room_code):
        with pytest.raises(ValidationException) as exc_info:
            validate_room_code(room_code)
        assert exc_info.value.status_code == 400
        assert exc_info.value.validation_errors[0].field == "room_code"


class TestSubmit:
    """메시지 전송 테스트"""

    @pytest.mark.asyncio
    async def test_submit_text_persists_and_broadcasts(self, message_service, registry, clock, make_connection):
        """텍스트 메시지가 저장되고 방의 모든 연결에 한 번씩 전달된다"""
        sender = make_connection("sender")
        other = make_connection("other")
        await registry.join(sender, "R1")
        await registry.join(other, "R1")

        record = await message_service.submit("R1", "text", "hello")

        assert record.kind == MessageKind.TEXT
        assert record.content == "hello"
        assert record.room_code == "R1"
        assert record.file_ref is None
        assert record.file_deletion_token is None
        assert record.created_at == clock.now

        for connection in (sender, other):
            frames = connection.frames(MESSAGE_RECEIVED)
            assert len(frames) == 1
            assert frames[0]["data"]["id"] == record.id
            assert frames[0]["data"]["content"] == "hello"

        history = await message_service.retrieve_history("R1")
        assert [message.id for message in history] == [record.id]

    @pytest.mark.asyncio
    async def test_broadcast_only_reaches_the_target_room(self, message_service, registry, make_connection):
        """다른 방의 연결에는 전달되지 않는다"""
        members = [make_connection(f"a{i}") for i in range(3)]
        outsider = make_connection("z")
        for connection in members:
            await registry.join(connection, "ABCDEF")
        await registry.join(outsider, "ZZZZZZ")

        await message_service.submit("ABCDEF", "text", "only for ABCDEF")

        assert sum(len(c.frames(MESSAGE_RECEIVED)) for c in members) == 3
        assert outsider.sent == []

    @pytest.mark.asyncio
    async def test_history_is_ordered_by_creation(self, message_service, clock):
        """히스토리는 생성 순서대로 반환된다"""
        first = await message_service.submit("R1", "text", "one")
        clock.advance(seconds=1)
        second = await message_service.submit("R1", "text", "two")
        third = await message_service.submit("R1", "text", "three")

        history = await message_service.retrieve_history("R1")

        assert [m.id for m in history] == [first.id, second.id, third.id]
        assert [m.created_at for m in history] == sorted(m.created_at for m in history)

    @pytest.mark.asyncio
    async def test_empty_room_history_is_empty(self, message_service):
        assert await message_service.retrieve_history("never-used") == []

    @pytest.mark.asyncio
    async def test_broadcast_payload_hides_deletion_token(self, message_service, object_store, registry, make_connection):
        """브로드캐스트에는 파일 삭제 토큰이 포함되지 않는다"""
        connection = make_connection()
        await registry.join(connection, "R1")
        stored = await _upload(object_store)

        record = await message_service.submit(
            "R1", "file", "notes.txt",
            file_ref=stored.file_ref, file_deletion_token=stored.file_deletion_token
        )

        data = connection.frames(MESSAGE_RECEIVED)[0]["data"]
        assert data["file_ref"] == stored.file_ref
        assert "file_deletion_token" not in data
        assert record.file_deletion_token == stored.file_deletion_token

    @pytest.mark.asyncio
    async def test_file_message_without_content_uses_stored_name(self, message_service, object_store):
        stored = await _upload(object_store)

        record = await message_service.submit(
            "R1", MessageKind.FILE, None,
            file_ref=stored.file_ref, file_deletion_token=stored.file_deletion_token
        )

        assert record.content == stored.file_ref.rsplit("/", 1)[-1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"room_code": "", "kind": "text", "content": "hi"}, "room_code"),
            ({"room_code": "R1", "kind": "image", "content": "hi"}, "kind"),
            ({"room_code": "R1", "kind": None, "content": "hi"}, "kind"),
            ({"room_code": "R1", "kind": "text", "content": "   "}, "content"),
            ({"room_code": "R1", "kind": "text", "content": "x" * 101}, "content"),
            ({"room_code": "R1", "kind": "text", "content": "hi", "file_ref": "/files/a.txt"}, "file_ref"),
            ({"room_code": "R1", "kind": "file", "content": "a.txt", "file_ref": "/files/a.txt"}, "file_deletion_token"),
            ({"room_code": "R1", "kind": "file", "content": "a.txt"}, "file_ref"),
        ],
    )
    async def test_invalid_submission_is_rejected(self, message_service, store, registry, make_connection, kwargs, field):
        """검증 실패 시 저장도 브로드캐스트도 하지 않는다"""
        connection = make_connection()
        await registry.join(connection, "R1")

        with pytest.raises(ValidationException) as exc_info:
            await message_service.submit(**kwargs)

        assert field in [error.field for error in exc_info.value.validation_errors]
        assert len(store) == 0
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_file_message_with_forged_token_is_rejected(self, message_service, store, object_store):
        stored = await _upload(object_store)

        with pytest.raises(ValidationException) as exc_info:
            await message_service.submit(
                "R1", "file", "notes.txt",
                file_ref=stored.file_ref, file_deletion_token="deadbeef:token"
            )

        assert [error.field for error in exc_info.value.validation_errors] == ["file_deletion_token"]
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_file_message_with_token_of_other_upload_is_rejected(self, message_service, store, object_store):
        """다른 업로드의 토큰과 file_ref 를 섞어 보내면 거부된다"""
        first = await _upload(object_store, "a.txt")
        second = await _upload(object_store, "b.txt")

        with pytest.raises(ValidationException):
            await message_service.submit(
                "R1", "file", "a.txt",
                file_ref=first.file_ref, file_deletion_token=second.file_deletion_token
            )

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_broadcast(self, message_service, store, registry, make_connection):
        connection = make_connection()
        await registry.join(connection, "R1")
        store.append = AsyncMock(side_effect=PersistenceException("insert"))

        with pytest.raises(PersistenceException):
            await message_service.submit("R1", "text", "hello")

        assert connection.sent == []


class TestDelete:
    """메시지 삭제 테스트"""

    @pytest.mark.asyncio
    async def test_delete_removes_and_broadcasts_once(self, message_service, registry, make_connection):
        connections = [make_connection(f"c{i}") for i in range(2)]
        for connection in connections:
            await registry.join(connection, "R1")
        record = await message_service.submit("R1", "text", "bye")

        deleted_id = await message_service.delete(record.id)

        assert deleted_id == record.id
        assert await message_service.retrieve_history("R1") == []
        for connection in connections:
            frames = connection.frames(MESSAGE_DELETED)
            assert frames == [{"type": MESSAGE_DELETED, "data": {"message_id": record.id}}]

    @pytest.mark.asyncio
    async def test_delete_twice_reports_not_found(self, message_service, registry, make_connection):
        connection = make_connection()
        await registry.join(connection, "R1")
        record = await message_service.submit("R1", "text", "bye")
        await message_service.delete(record.id)

        with pytest.raises(ResourceNotFoundException):
            await message_service.delete(record.id)

        assert len(connection.frames(MESSAGE_DELETED)) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_message(self, message_service):
        with pytest.raises(ResourceNotFoundException) as exc_info:
            await message_service.delete("000000000000000000000000")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_file_message_removes_stored_file(self, message_service, object_store):
        stored = await _upload(object_store)
        stored_path = object_store.upload_dir / stored.file_ref.rsplit("/", 1)[-1]
        record = await message_service.submit(
            "R1", "file", "notes.txt",
            file_ref=stored.file_ref, file_deletion_token=stored.file_deletion_token
        )
        assert stored_path.exists()

        await message_service.delete(record.id)

        assert not stored_path.exists()

    @pytest.mark.asyncio
    async def test_object_store_failure_does_not_block_delete(
        self, message_service, object_store, backlog, registry, make_connection
    ):
        """파일 삭제가 실패해도 메시지는 삭제되고 토큰은 백로그로 간다"""
        connection = make_connection()
        await registry.join(connection, "R1")
        stored = await _upload(object_store)
        record = await message_service.submit(
            "R1", "file", "notes.txt",
            file_ref=stored.file_ref, file_deletion_token=stored.file_deletion_token
        )
        object_store.delete = AsyncMock(side_effect=ObjectStoreException("delete", "unreachable"))

        await message_service.delete(record.id)

        assert await message_service.retrieve_history("R1") == []
        assert len(connection.frames(MESSAGE_DELETED)) == 1
        assert stored.file_deletion_token in backlog

    @pytest.mark.asyncio
    async def test_invalid_deletion_token_is_not_backlogged(self, message_service, store, backlog):
        """서명이 맞지 않는 토큰은 재시도 대기열에 넣지 않는다"""
        record = await store.append(
            room_code="R1", kind=MessageKind.FILE, content="legacy.txt",
            file_ref="/files/legacy.txt", file_deletion_token="deadbeef:token"
        )

        await message_service.delete(record.id)

        assert await message_service.retrieve_history("R1") == []
        assert len(backlog) == 0
