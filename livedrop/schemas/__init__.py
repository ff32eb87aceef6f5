# Message schemas
from .message import (
    MessageKind,
    MessageRecord,
    MessageResponse,
    MessageCreate,
    MessageCreateResponse,
    MessageDeleteResponse,
    HistoryRequest,
    HistoryResponse
)

# File schemas
from .file import FileUploadResponse

# Room schemas
from .room import RoomStatusResponse, SweepReport

__all__ = [
    # Message
    "MessageKind",
    "MessageRecord",
    "MessageResponse",
    "MessageCreate",
    "MessageCreateResponse",
    "MessageDeleteResponse",
    "HistoryRequest",
    "HistoryResponse",

    # File
    "FileUploadResponse",

    # Room
    "RoomStatusResponse",
    "SweepReport",
]
