from datetime import datetime
from typing import Optional
from beanie import Document
from pydantic import Field

from livedrop.schemas.message import MessageKind, MessageRecord
from livedrop.utils.time_utils import utc_now, ensure_utc


class MessageDocument(Document):
    room_code: str = Field(..., description="Room code the message belongs to")
    kind: MessageKind = Field(..., description="Type of message: text or file")
    content: str = Field(..., description="Text body, or display name for files")
    file_ref: Optional[str] = Field(None, description="Retrieval path of the stored file")
    file_deletion_token: Optional[str] = Field(None, description="Token required to delete the stored file")
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "messages"
        indexes = [
            [("room_code", 1), ("created_at", 1), ("_id", 1)],  # For room history in display order
            [("created_at", -1)],  # For the inactivity sweep
        ]

    def to_record(self) -> MessageRecord:
        return MessageRecord(
            id=str(self.id),
            room_code=self.room_code,
            kind=self.kind,
            content=self.content,
            file_ref=self.file_ref,
            file_deletion_token=self.file_deletion_token,
            created_at=ensure_utc(self.created_at),
        )

    def __repr__(self):
        return f"<MessageDocument(id={self.id}, room_code={self.room_code}, kind={self.kind})>"
