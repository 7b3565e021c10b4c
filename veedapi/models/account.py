from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.schema import CheckConstraint

from veedapi.models.base import BaseModel, Money, PrimaryKey
from veedapi.models.catalog import Plan


class AccountRole(str, Enum):
    """계정 역할 정의"""

    USER = "user"  # 일반 사용자
    ADMIN = "admin"  # 관리자

    @classmethod
    def is_admin(cls, role: Union[str, "AccountRole"]) -> bool:
        if isinstance(role, cls):
            role = role.value
        return role == cls.ADMIN.value


class Account(BaseModel):
    """
    사용자 계정 - 잔액과 구독/시청 상태를 함께 보관

    balance 는 원장(ledger_entries)의 completed 항목 합계와 항상 같아야 합니다.
    plan_videos_per_day / plan_daily_reward 는 구매 시점의 플랜 조건 스냅샷으로,
    관리자가 플랜을 수정해도 이미 활성화된 구독에는 영향을 주지 않습니다.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("videos_watched_today >= 0", name="ck_accounts_videos_non_negative"),
        Index("idx_accounts_referred_by", "referred_by_id"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )  # 관리자 차단 시 False
    role: Mapped[str] = mapped_column(
        String(20), default=AccountRole.USER.value, nullable=False
    )

    balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)

    current_plan_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("plans.id"), nullable=True
    )
    plan_activated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    plan_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )  # perpetual 모델에서는 NULL
    plan_videos_per_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    plan_daily_reward: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    # 현재 구독 주기를 식별하는 plan_purchase 원장 항목 (ledger_entries 와 순환 FK 를 피해 FK 없음)
    plan_purchase_entry_id: Mapped[Optional[int]] = mapped_column(PrimaryKey, nullable=True)

    videos_watched_today: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_video_watch_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    referred_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    referral_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)

    current_plan: Mapped[Optional[Plan]] = relationship(Plan)

    def __repr__(self):
        return f"<Account(id={self.id}, username={self.username}, balance={self.balance})>"

    @property
    def is_admin(self) -> bool:
        return AccountRole.is_admin(str(self.role))

    @property
    def has_plan(self) -> bool:
        return self.current_plan_id is not None
