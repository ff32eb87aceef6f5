"""
요청 로깅 미들웨어

요청마다 request_id 를 부여하고 처리 결과를 한 줄의 구조화 로그로 남깁니다.
헬스 체크와 메트릭 수집 요청은 DEBUG 로만 기록합니다.
"""

import time
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from livedrop.core.logging import get_logger, set_request_context, clear_request_context, log_api_call

logger = get_logger(__name__)

QUIET_PATH_PREFIXES = ("/health", "/metrics")


class LoggingMiddleware(BaseHTTPMiddleware):
    """HTTP 요청 로깅 미들웨어"""

    def __init__(
        self,
        app,
        slow_request_threshold_ms: float = 1000,
        quiet_path_prefixes: Iterable[str] = QUIET_PATH_PREFIXES,
    ):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms
        self.quiet_path_prefixes = tuple(quiet_path_prefixes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        set_request_context(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - started) * 1000
            path = request.url.path

            if path.startswith(self.quiet_path_prefixes):
                logger.debug(f"{request.method} {path} - {response.status_code}")
            else:
                log_api_call(
                    logger,
                    method=request.method,
                    path=path,
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                    route=self._route_template(request),
                    client_ip=self._client_ip(request),
                )

            if duration_ms > self.slow_request_threshold_ms:
                logger.warning(
                    f"Slow request: {request.method} {path} took {duration_ms:.0f}ms",
                    extra={"event_type": "slow_request", "duration_ms": duration_ms}
                )

            response.headers["X-Request-ID"] = request_id
            return response

        finally:
            clear_request_context()

    @staticmethod
    def _route_template(request: Request) -> Optional[str]:
        # /api/message/{message_id} 처럼 경로 파라미터를 묶어서 집계
        route = request.scope.get("route")
        return getattr(route, "path", None)

    @staticmethod
    def _client_ip(request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"
