"""
플랜/영상 카탈로그 모델

Plan 과 Video 는 여러 계정이 공유하는 참조 데이터이며 어떤 계정에도 소유되지 않습니다.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import CheckConstraint

from veedapi.models.base import BaseModel, Money, PrimaryKey
from veedapi.utils.money import to_money


class Plan(BaseModel):
    __tablename__ = "plans"
    __table_args__ = (
        CheckConstraint("videos_per_day > 0", name="ck_plans_videos_per_day_positive"),
        CheckConstraint("duration_days > 0", name="ck_plans_duration_positive"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    cost: Mapped[Decimal] = mapped_column(Money, nullable=False)
    daily_reward: Mapped[Decimal] = mapped_column(Money, nullable=False)
    videos_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    # daily_reward * duration_days, 생성/수정 시 재계산
    total_reward: Mapped[Decimal] = mapped_column(Money, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Plan(id={self.id}, name={self.name}, cost={self.cost})>"

    @property
    def reward_per_video(self) -> Decimal:
        return to_money(Decimal(self.daily_reward) / self.videos_per_day)


class Video(BaseModel):
    __tablename__ = "videos"
    __table_args__ = (
        CheckConstraint("duration_seconds > 0", name="ck_videos_duration_positive"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    video_url: Mapped[str] = mapped_column(Text, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    # NULL 이면 플랜 기반 보상을 따름 (video_fixed 모델에서만 의미 있음)
    reward_amount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Video(id={self.id}, title={self.title}, duration={self.duration_seconds})>"
