from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from veedapi.models.base import BaseModel, Money, PrimaryKey


class WatchRecord(BaseModel):
    """
    영상 시청 기록 - 보상이 지급된 시청 1건당 1행

    watch_day 는 Africa/Maputo 기준 날짜이며,
    (account_id, video_id, watch_day) 유니크 제약이 하루 1회 보상의 커밋 포인트입니다.
    """

    __tablename__ = "watch_records"
    __table_args__ = (
        UniqueConstraint("account_id", "video_id", "watch_day", name="uq_watch_once_per_day"),
        Index("idx_watch_account_day", "account_id", "watch_day"),
        Index("idx_watch_account_cycle", "account_id", "plan_purchase_entry_id"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    video_id: Mapped[int] = mapped_column(ForeignKey("videos.id"), nullable=False)
    watched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    watch_day: Mapped[date] = mapped_column(Date, nullable=False)
    reward_earned: Mapped[Decimal] = mapped_column(Money, nullable=False)
    # 보상 원장 항목 (추천 보너스 재시도 시 기준)
    ledger_entry_id: Mapped[int] = mapped_column(ForeignKey("ledger_entries.id"), nullable=False)
    # 시청 당시 구독 주기와 할당량 (같은 날 플랜을 바꿔도 주기별로 할당량 완료를 판단)
    plan_purchase_entry_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )
    daily_quota: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self):
        return (
            f"<WatchRecord(account_id={self.account_id}, video_id={self.video_id}, "
            f"watch_day={self.watch_day})>"
        )
