"""
비활성 방 정리 (Inactivity Reaper)

방마다 타이머를 두지 않고, 주기적인 전역 정리 한 번으로 모든 방을 평가합니다.
방의 가장 최근 메시지가 비활성 기준 시간(threshold) 이전이면 그 방의 메시지
전체(와 저장된 파일)를 삭제합니다. 실시간 연결 멤버십은 건드리지 않습니다.
"""

import asyncio
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from livedrop.core.errors import InvalidDeletionTokenException
from livedrop.core.logging import get_logger, log_sweep_result
from livedrop.schemas.message import MessageKind, MessageRecord
from livedrop.schemas.room import SweepReport
from livedrop.services.object_store import FileDeletionBacklog, ObjectStore
from livedrop.services.storage_gateway import MessageStore
from livedrop.utils.time_utils import utc_now

logger = get_logger(__name__)


class InactivityReaper:
    """비활성 방의 메시지와 파일을 일괄 삭제"""

    def __init__(
        self,
        store: MessageStore,
        object_store: ObjectStore,
        inactivity_window: timedelta,
        backlog: Optional[FileDeletionBacklog] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.object_store = object_store
        self.inactivity_window = inactivity_window
        self.backlog = backlog if backlog is not None else FileDeletionBacklog()
        self.clock = clock
        # 스케줄러와 HTTP 트리거가 동시에 정리하지 않도록 직렬화
        self._lock = asyncio.Lock()

    async def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        비활성 방을 정리합니다.

        Args:
            now: 기준 시각 (기본값: 현재 UTC)

        Returns:
            SweepReport: 삭제된 메시지 수, 시도한 파일 삭제 수, 정리된 방 수 등

        Raises:
            PersistenceException: 저장소 장애 (다음 정리 때 다시 시도됨)
        """
        async with self._lock:
            start_time = time.time()
            now = now or self.clock()
            threshold = now - self.inactivity_window

            backlog_retried = await self._retry_backlog()

            # 1. threshold 이후 메시지가 하나라도 있는 방 = 활성 방
            active_room_codes = await self.store.active_room_codes(threshold)

            # 2. 활성 방이 아닌, 정리 시작 이전에 저장된 메시지 = 삭제 후보 (개별 메시지 나이와 무관)
            candidates = await self.store.find_outside_rooms(active_room_codes, before=now)

            if not candidates:
                return SweepReport(backlog_retried=backlog_retried)

            # 3. 그 사이 새 메시지가 들어온 방은 제외
            active_now = await self.store.active_room_codes(threshold)
            inactive_messages = [message for message in candidates if message.room_code not in active_now]

            if not inactive_messages:
                return SweepReport(backlog_retried=backlog_retried)

            # 4. 메시지 레코드 삭제 (저장소에서도 같은 조건으로 한 번 더 거름)
            deleted_count = await self.store.delete_many(
                [message.id for message in inactive_messages],
                exclude_rooms=active_now,
                before=now,
            )

            # 5. 저장된 파일 삭제 (실패는 모아서 백로그로)
            file_messages = [
                message for message in inactive_messages
                if message.kind == MessageKind.FILE and message.file_deletion_token
            ]
            results = await asyncio.gather(
                *(self._delete_stored_file(message) for message in file_messages)
            )
            file_deletion_failures = results.count(False)

            report = SweepReport(
                deleted_count=deleted_count,
                file_deletions_attempted=len(file_messages),
                rooms_cleaned=len({message.room_code for message in inactive_messages}),
                file_deletion_failures=file_deletion_failures,
                backlog_retried=backlog_retried,
            )

            log_sweep_result(
                logger,
                report.deleted_count,
                report.file_deletions_attempted,
                report.rooms_cleaned,
                duration_ms=(time.time() - start_time) * 1000,
                file_deletion_failures=file_deletion_failures,
                threshold=threshold.isoformat(),
            )
            return report

    async def _delete_stored_file(self, message: MessageRecord) -> bool:
        try:
            await self.object_store.delete(message.file_deletion_token)
            return True
        except InvalidDeletionTokenException:
            logger.error(
                f"Stored file for expired message {message.id} has an invalid deletion token, skipping",
                extra={"event_type": "file_delete_invalid_token", "message_id": message.id, "file_ref": message.file_ref}
            )
            return False
        except Exception as e:
            logger.warning(
                f"Stored file for expired message {message.id} could not be deleted: {e}",
                extra={"event_type": "file_delete_failed", "message_id": message.id, "file_ref": message.file_ref}
            )
            self.backlog.add(message.file_deletion_token)
            return False

    async def _retry_backlog(self) -> int:
        """이전에 실패한 파일 삭제 재시도. 성공한 수를 반환합니다."""
        tokens: List[str] = self.backlog.drain()
        retried = 0

        for token in tokens:
            try:
                await self.object_store.delete(token)
                retried += 1
            except InvalidDeletionTokenException:
                logger.error("Dropped backlogged file deletion with an invalid token")
            except Exception as e:
                logger.warning(f"Backlogged file deletion failed again: {e}")
                self.backlog.add(token)

        if tokens:
            logger.info(f"Retried {len(tokens)} backlogged file deletions, {retried} succeeded")
        return retried


class ReaperScheduler:
    """일정 주기로 정리 작업을 실행하는 백그라운드 태스크"""

    def __init__(self, reaper: InactivityReaper, interval_seconds: float):
        self.reaper = reaper
        self.interval_seconds = interval_seconds
        self.running = False
        self.task: Optional[asyncio.Task] = None

    async def start(self):
        """스케줄러 시작"""
        if self.running:
            logger.warning("Reaper scheduler is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info(f"Reaper scheduler started (every {self.interval_seconds}s)")

    async def stop(self):
        """스케줄러 중지"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Reaper scheduler stopped")

    async def _run(self):
        while self.running:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    async def run_once(self) -> Optional[SweepReport]:
        """한 번 정리합니다. 실패하면 기록만 하고 다음 주기를 기다립니다."""
        try:
            return await self.reaper.sweep()
        except Exception:
            logger.exception("Scheduled inactivity sweep failed; will retry on next tick")
            return None
