import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from livedrop.api.dependencies import get_room_registry
from livedrop.websockets.connection_manager import RoomRegistry, connection_label
from livedrop.websockets.handlers import WebSocketMessageHandler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    registry: RoomRegistry = Depends(get_room_registry),
):
    """
    방 실시간 채널 WebSocket 엔드포인트

    연결 후 `{"type": "join", "room_code": "..."}` 를 보내면 해당 방의
    `message-received` / `message-deleted` 이벤트를 받습니다.
    연결이 끊기면(정상/비정상 모두) 모든 방에서 제거됩니다.
    """
    await websocket.accept()
    handler = WebSocketMessageHandler(registry)
    label = connection_label(websocket)

    try:
        # 전송 실패로 레지스트리가 소켓을 닫으면 루프 종료
        while websocket.application_state == WebSocketState.CONNECTED:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                # JSON 파싱 오류
                logger.warning(f"Invalid JSON from {label}: {e}")
                await websocket.send_json({
                    "type": "error",
                    "error_code": "invalid_json",
                    "message": "Frames must be valid JSON"
                })
                continue
            except KeyError:
                # 바이너리 프레임 (text 없음)
                logger.warning(f"Binary frame from {label}")
                await websocket.send_json({
                    "type": "error",
                    "error_code": "invalid_frame",
                    "message": "Frames must be JSON text"
                })
                continue

            if websocket.application_state != WebSocketState.CONNECTED:
                break

            await handler.handle_message(websocket, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {label}")

    finally:
        await registry.leave(websocket)
