from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from veedapi.models.account import AccountRole


class DailyWatchState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"


class AccountCreate(BaseModel):
    """계정 생성 요청 (비밀번호/인증은 외부 Identity 서비스 담당)"""

    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    referral_code: Optional[str] = Field(None, max_length=16, description="추천인 코드")

    @field_validator("username")
    @classmethod
    def username_must_not_be_blank(cls, v: str) -> str:
        if v.strip() == "":
            raise ValueError("Username cannot be empty")
        return v.strip()

    @field_validator("referral_code")
    @classmethod
    def normalize_referral_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v.strip() == "":
            return None
        return v.strip().upper()


class Account(BaseModel):
    id: int
    username: str
    email: EmailStr
    is_verified: bool = False
    is_active: bool = True
    role: AccountRole = AccountRole.USER
    balance: Decimal
    current_plan_id: Optional[int] = None
    plan_activated_at: Optional[datetime] = None
    plan_expires_at: Optional[datetime] = None
    videos_watched_today: int = 0
    last_video_watch_date: Optional[datetime] = None
    referral_code: str
    referred_by_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DailyWatchStatus(BaseModel):
    """오늘(Africa/Maputo 기준) 시청 현황"""

    account_id: int
    day: date
    state: DailyWatchState
    videos_watched_today: int
    videos_per_day: int = Field(0, description="활성 플랜이 없으면 0")
    remaining: int
    has_active_plan: bool
    plan_expires_at: Optional[datetime] = None
    watched_video_ids: List[int] = Field(default_factory=list)


class ReferredAccount(BaseModel):
    id: int
    username: str
    balance: Decimal
    current_plan_id: Optional[int] = None

    class Config:
        from_attributes = True


class ReferralSummary(BaseModel):
    referral_code: str
    referral_link: str
    referred_accounts: List[ReferredAccount]
    total_earnings: Decimal
