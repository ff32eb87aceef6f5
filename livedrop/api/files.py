from fastapi import APIRouter, Depends, File, UploadFile

from livedrop.api.dependencies import get_object_store
from livedrop.schemas.file import FileUploadResponse
from livedrop.services.object_store import ObjectStore

router = APIRouter(prefix="/api", tags=["Files"])


@router.post("/upload", response_model=FileUploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    object_store: ObjectStore = Depends(get_object_store)
) -> FileUploadResponse:
    """
    파일 업로드

    반환된 file_ref 와 file_deletion_token 을 그대로 `POST /api/message` (kind=file) 에 전달해야 합니다.
    업로드 후 메시지가 생성되지 않으면 파일은 참조 없이 남습니다.
    """
    # 본문을 읽기 전에 선언된 크기로 먼저 거부
    object_store.validate_upload(file.filename, file.size or None)

    content = await file.read()
    stored = await object_store.upload(file.filename, content, file.content_type)

    return FileUploadResponse(
        file_ref=stored.file_ref,
        file_deletion_token=stored.file_deletion_token,
        file_name=stored.file_name,
        size=stored.size
    )
