from fastapi import APIRouter, Depends

from livedrop.api.dependencies import get_reaper
from livedrop.schemas.room import SweepReport
from livedrop.services.reaper import InactivityReaper

router = APIRouter(prefix="/api", tags=["Cleanup"])


@router.get("/cleanup", response_model=SweepReport)
async def run_cleanup_sweep(
    reaper: InactivityReaper = Depends(get_reaper)
) -> SweepReport:
    """
    비활성 방 정리 (외부 스케줄러에서 호출)

    마지막 메시지가 비활성 기준 시간보다 오래된 방의 메시지와 파일을 모두 삭제합니다.
    필요 이상으로 자주 호출해도 안전합니다.
    """
    return await reaper.sweep()
