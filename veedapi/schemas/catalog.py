from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class PlanCreate(BaseModel):
    """
    플랜 생성 요청

    daily_reward 또는 reward_per_video 중 하나만 지정합니다.
    reward_per_video 로 지정하면 daily_reward = reward_per_video * videos_per_day 로 정규화됩니다.
    """

    name: str = Field(..., min_length=1, max_length=100)
    cost: Decimal
    daily_reward: Optional[Decimal] = None
    reward_per_video: Optional[Decimal] = None
    videos_per_day: int = Field(..., gt=0)
    duration_days: int = Field(..., gt=0)

    @model_validator(mode="after")
    def exactly_one_reward_form(self) -> "PlanCreate":
        if (self.daily_reward is None) == (self.reward_per_video is None):
            raise ValueError("Specify exactly one of daily_reward or reward_per_video")
        return self

    def normalized_daily_reward(self) -> Decimal:
        if self.daily_reward is not None:
            return self.daily_reward
        return self.reward_per_video * self.videos_per_day


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    cost: Optional[Decimal] = None
    daily_reward: Optional[Decimal] = None
    videos_per_day: Optional[int] = Field(None, gt=0)
    duration_days: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None


class Plan(BaseModel):
    id: int
    name: str
    cost: Decimal
    daily_reward: Decimal
    reward_per_video: Decimal
    videos_per_day: int
    duration_days: int
    total_reward: Decimal
    is_active: bool = True

    class Config:
        from_attributes = True


class PurchaseResult(BaseModel):
    account_id: int
    plan_id: int
    plan_name: str
    balance: Decimal = Field(..., description="구매 후 잔액")
    plan_activated_at: datetime
    plan_expires_at: Optional[datetime] = None
    ledger_entry_id: int
    referral_entry_id: Optional[int] = Field(None, description="추천인 보너스 원장 ID")


class VideoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    video_url: str = Field(..., min_length=1)
    duration_seconds: int = Field(..., gt=0)
    reward_amount: Optional[Decimal] = None
    is_active: bool = True


class VideoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, gt=0)
    reward_amount: Optional[Decimal] = None
    is_active: Optional[bool] = None


class Video(BaseModel):
    id: int
    title: str
    video_url: str
    duration_seconds: int
    reward_amount: Optional[Decimal] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class AvailableVideo(Video):
    watched_today: bool = False
