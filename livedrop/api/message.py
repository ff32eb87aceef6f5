from fastapi import APIRouter, Depends, status

from livedrop.api.dependencies import get_message_service
from livedrop.schemas.message import MessageCreate, MessageCreateResponse, MessageDeleteResponse
from livedrop.services.message_service import MessageLifecycleManager

router = APIRouter(prefix="/api", tags=["Messages"])


@router.post("/message", response_model=MessageCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    message_data: MessageCreate,
    message_service: MessageLifecycleManager = Depends(get_message_service)
) -> MessageCreateResponse:
    """
    메시지 전송

    - **room_code**: 방 코드
    - **kind**: text 또는 file
    - **content**: 텍스트 본문 (file 이면 표시 이름)
    - **file_ref**, **file_deletion_token**: file 인 경우 업로드 응답 값을 그대로 전달

    저장된 메시지는 보낸 사람을 포함한 방의 모든 연결에 `message-received` 로 전달됩니다.
    이 응답은 확인용이며 화면 갱신은 브로드캐스트를 기준으로 합니다.
    """
    message = await message_service.submit(
        room_code=message_data.room_code,
        kind=message_data.kind,
        content=message_data.content,
        file_ref=message_data.file_ref,
        file_deletion_token=message_data.file_deletion_token
    )
    return MessageCreateResponse(message=message.to_public())


@router.delete("/message/{message_id}", response_model=MessageDeleteResponse)
async def delete_message(
    message_id: str,
    message_service: MessageLifecycleManager = Depends(get_message_service)
) -> MessageDeleteResponse:
    """
    메시지 삭제

    방 코드를 아는 누구나 삭제할 수 있습니다. 파일 메시지는 저장된 파일도 함께 삭제하며,
    파일 삭제가 실패해도 메시지는 삭제되고 `message-deleted` 가 전달됩니다.
    """
    deleted_id = await message_service.delete(message_id)
    return MessageDeleteResponse(message_id=deleted_id)
