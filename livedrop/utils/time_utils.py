"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """현재 UTC 시각 (timezone-aware)"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    datetime을 UTC timezone-aware 값으로 맞춥니다.

    MongoDB 드라이버 설정에 따라 naive datetime이 돌아올 수 있으므로
    naive 값은 UTC로 간주합니다.

    Examples:
        >>> ensure_utc(datetime(2024, 1, 1)).tzinfo
        datetime.timezone.utc
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def truncate_to_millis(dt: datetime) -> datetime:
    """MongoDB(BSON date) 정밀도에 맞춰 마이크로초를 밀리초 단위로 버림"""
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)
