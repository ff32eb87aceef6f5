from pydantic import BaseModel, Field


class FileUploadResponse(BaseModel):
    """파일 업로드 응답

    file_ref 와 file_deletion_token 은 한 쌍으로 메시지 생성 요청에 그대로 전달됩니다.
    """
    file_ref: str = Field(..., description="파일 조회 경로")
    file_deletion_token: str = Field(..., description="파일 삭제 토큰")
    file_name: str = Field(..., description="원본 파일 이름")
    size: int = Field(..., ge=0, description="파일 크기 (bytes)")
