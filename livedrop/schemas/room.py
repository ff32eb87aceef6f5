from pydantic import BaseModel, Field


class RoomStatusResponse(BaseModel):
    """방의 실시간 접속 상태"""
    room_code: str = Field(..., description="방 코드")
    online_count: int = Field(..., ge=0, description="현재 이 프로세스에 연결된 참여자 수")
    is_active: bool = Field(..., description="연결된 참여자 존재 여부")


class SweepReport(BaseModel):
    """비활성 방 정리 결과"""
    deleted_count: int = Field(0, ge=0, description="삭제된 메시지 수")
    file_deletions_attempted: int = Field(0, ge=0, description="시도한 파일 삭제 수")
    rooms_cleaned: int = Field(0, ge=0, description="정리된 방 수")
    file_deletion_failures: int = Field(0, ge=0, description="실패한 파일 삭제 수 (백로그로 이동)")
    backlog_retried: int = Field(0, ge=0, description="재시도에 성공한 백로그 파일 삭제 수")
