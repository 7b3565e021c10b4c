"""
타임존 유틸리티

Africa/Maputo (UTC+2, DST 없음) 기준 "오늘" 판단을 위한 정책 객체.
일일 리셋/자격 판단은 모두 DayPolicy 를 거쳐야 하며, UTC 시각을 직접 비교하지 않습니다.
(자정 경계가 최대 2시간 어긋남)
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz


class SystemClock:
    """현재 UTC 시각을 반환하는 기본 시계"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """테스트용 시계 - 지정한 시각에 고정되며 advance() 로 이동"""

    def __init__(self, instant: datetime):
        self._instant = ensure_aware(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_aware(instant)

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant


def ensure_aware(dt: datetime) -> datetime:
    """naive datetime 은 UTC 로 가정합니다. (sqlite 는 tzinfo 를 보존하지 않음)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class DayPolicy:
    """지정 타임존의 달력 날짜 기준으로 날짜를 판단하는 정책"""

    def __init__(self, timezone_name: str = "Africa/Maputo", clock=None):
        self.tz = pytz.timezone(timezone_name)
        self.clock = clock or SystemClock()

    def now(self) -> datetime:
        """현재 시각 (UTC, aware)"""
        return ensure_aware(self.clock.now()).astimezone(timezone.utc)

    def local_now(self) -> datetime:
        return self.now().astimezone(self.tz)

    def local_day(self, instant: datetime) -> date:
        """시각을 정책 타임존의 날짜로 변환"""
        return ensure_aware(instant).astimezone(self.tz).date()

    def current_day(self) -> date:
        return self.local_day(self.now())

    def is_same_day(self, a: datetime, b: datetime) -> bool:
        return self.local_day(a) == self.local_day(b)

    def is_before_day(self, a: datetime, b: datetime) -> bool:
        """a 의 로컬 날짜가 b 의 로컬 날짜보다 앞서는지"""
        return self.local_day(a) < self.local_day(b)

    def is_before_today(self, instant: Optional[datetime]) -> bool:
        """None 은 '아직 시청 기록 없음' 으로 보고 True"""
        if instant is None:
            return True
        return self.is_before_day(instant, self.now())

    def day_bounds(self, day: date) -> Tuple[datetime, datetime]:
        """로컬 날짜의 [시작, 다음날 시작) 구간을 UTC 로 반환"""
        start = self.tz.localize(datetime.combine(day, time.min))
        end = self.tz.localize(datetime.combine(day + timedelta(days=1), time.min))
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
