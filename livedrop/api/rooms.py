from fastapi import APIRouter, Depends

from livedrop.api.dependencies import get_message_service, get_room_registry
from livedrop.schemas.message import HistoryRequest, HistoryResponse
from livedrop.schemas.room import RoomStatusResponse
from livedrop.services.message_service import MessageLifecycleManager, validate_room_code
from livedrop.websockets.connection_manager import RoomRegistry

router = APIRouter(prefix="/api", tags=["Rooms"])


@router.post("/room/join", response_model=HistoryResponse)
async def fetch_room_history(
    request: HistoryRequest,
    message_service: MessageLifecycleManager = Depends(get_message_service)
) -> HistoryResponse:
    """
    방 히스토리 조회

    - **room_code**: 방 코드

    메시지가 없는 방도 정상 응답(빈 목록)입니다. 실시간 이벤트는 WebSocket 으로 같은 방에 join 해서 받습니다.
    """
    messages = await message_service.retrieve_history(request.room_code)
    return HistoryResponse(messages=[message.to_public() for message in messages])


@router.get("/rooms/{room_code}/status", response_model=RoomStatusResponse)
async def get_room_status(
    room_code: str,
    registry: RoomRegistry = Depends(get_room_registry)
) -> RoomStatusResponse:
    """방의 현재 실시간 연결 상태 조회 (이 프로세스 기준)"""
    room_code = validate_room_code(room_code)
    online_count = registry.get_member_count(room_code)
    return RoomStatusResponse(
        room_code=room_code,
        online_count=online_count,
        is_active=online_count > 0
    )
