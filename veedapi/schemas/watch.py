from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from veedapi.schemas.account import DailyWatchState


class WatchRequest(BaseModel):
    """클라이언트가 보고한 시청 시간 (초)"""

    watched_seconds: float = Field(..., ge=0)


class WatchResult(BaseModel):
    account_id: int
    video_id: int
    reward: Decimal = Field(..., description="지급된 보상")
    balance: Decimal = Field(..., description="보상 지급 후 잔액")
    videos_watched_today: int
    videos_per_day: int
    state: DailyWatchState
    watch_record_id: int
    ledger_entry_id: int
    referral_entry_id: Optional[int] = None


class WatchRecord(BaseModel):
    id: int
    account_id: int
    video_id: int
    watched_at: datetime
    watch_day: date
    reward_earned: Decimal

    class Config:
        from_attributes = True


class WatchHistoryResponse(BaseModel):
    records: List[WatchRecord]
    total_count: int
    has_next: bool
