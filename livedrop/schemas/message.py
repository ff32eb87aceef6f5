from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, model_validator


class MessageKind(str, Enum):
    """메시지 종류 (닫힌 집합)"""
    TEXT = "text"
    FILE = "file"


class MessageRecord(BaseModel):
    """
    저장소가 돌려주는 메시지 레코드

    file_ref / file_deletion_token 은 kind 가 file 일 때만, 그리고 반드시 둘 다 존재합니다.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="메시지 ID (전역 고유)")
    room_code: str = Field(..., description="방 코드")
    kind: MessageKind = Field(..., description="메시지 종류: text, file")
    content: str = Field(..., description="텍스트 본문 또는 파일 표시 이름")
    file_ref: Optional[str] = Field(None, description="파일 조회 경로")
    file_deletion_token: Optional[str] = Field(None, description="파일 삭제 토큰 (비공개)")
    created_at: datetime = Field(..., description="생성일시 (UTC)")

    @model_validator(mode="after")
    def _check_file_fields(self) -> "MessageRecord":
        has_file_fields = (self.file_ref is not None, self.file_deletion_token is not None)
        if self.kind == MessageKind.FILE and has_file_fields != (True, True):
            raise ValueError("file messages require both file_ref and file_deletion_token")
        if self.kind == MessageKind.TEXT and any(has_file_fields):
            raise ValueError("text messages cannot carry file_ref or file_deletion_token")
        return self

    def to_public(self) -> "MessageResponse":
        """참여자에게 노출 가능한 형태로 변환 (삭제 토큰 제외)"""
        return MessageResponse(
            id=self.id,
            room_code=self.room_code,
            kind=self.kind,
            content=self.content,
            file_ref=self.file_ref,
            created_at=self.created_at,
        )


class MessageResponse(BaseModel):
    """메시지 응답 스키마 (브로드캐스트/히스토리 공용)"""
    id: str = Field(..., description="메시지 ID")
    room_code: str = Field(..., description="방 코드")
    kind: MessageKind = Field(..., description="메시지 종류")
    content: str = Field(..., description="텍스트 본문 또는 파일 표시 이름")
    file_ref: Optional[str] = Field(None, description="파일 조회 경로")
    created_at: datetime = Field(..., description="생성일시")


class MessageCreate(BaseModel):
    """메시지 생성 스키마

    검증은 서비스 계층에서 일괄 처리하므로 여기서는 형태만 받습니다.
    """
    room_code: Optional[str] = Field(None, description="방 코드")
    kind: Optional[str] = Field(None, description="메시지 종류: text, file")
    content: Optional[str] = Field(None, description="텍스트 본문 또는 파일 표시 이름")
    file_ref: Optional[str] = Field(None, description="업로드 응답의 file_ref")
    file_deletion_token: Optional[str] = Field(None, description="업로드 응답의 file_deletion_token")


class MessageCreateResponse(BaseModel):
    """메시지 생성 응답 (정보용, UI 상태는 브로드캐스트 기준)"""
    message: MessageResponse


class MessageDeleteResponse(BaseModel):
    """메시지 삭제 응답"""
    message_id: str


class HistoryRequest(BaseModel):
    """방 히스토리 조회 요청"""
    room_code: Optional[str] = Field(None, description="방 코드")


class HistoryResponse(BaseModel):
    """방 히스토리 응답 (created_at 오름차순)"""
    messages: List[MessageResponse] = Field(default_factory=list)
