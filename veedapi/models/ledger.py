"""
잔액 원장 데이터 모델

이 파일은 계정 잔액의 모든 변동 내역을 저장하는 원장(Ledger) 테이블을 정의합니다.
잔액의 증가/감소는 모두 이 테이블에 기록되어 완전한 감사 추적(Audit Trail)을 제공합니다.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from veedapi.models.base import BaseModel, Money, PrimaryKey


class LedgerKind(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_HOLD = "withdrawal_hold"  # 출금 요청 시점 선차감
    WITHDRAWAL_HOLD_RELEASE = "withdrawal_hold_release"  # 승인 시 선차감 해제
    WITHDRAWAL_REFUND = "withdrawal_refund"  # 거절 시 선차감 환불
    PLAN_PURCHASE = "plan_purchase"
    VIDEO_REWARD = "video_reward"
    REFERRAL_PLAN_BONUS = "referral_plan_bonus"
    REFERRAL_DAILY_BONUS = "referral_daily_bonus"
    MANUAL_CREDIT = "manual_credit"
    MANUAL_DEBIT = "manual_debit"


class LedgerStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class LedgerEntry(BaseModel):
    """
    원장 테이블 - 모든 잔액 변동 내역을 저장

    이 테이블은 다음 원칙을 따릅니다:
    1. 불변성(Immutable): 생성된 레코드는 pending -> completed/failed 상태 전이 한 번 외에는 수정되지 않음
    2. 완전성(Complete): 모든 잔액 변동사항이 기록됨
    3. 멱등성(Idempotent): event_key 를 통해 중복 처리 방지
    4. 정합성(Integrity): completed 항목의 amount 합계 == accounts.balance

    특징:
    - pending 상태는 입금/출금 요청에만 사용되며 잔액에 반영되지 않음
    - 보상/구매/보너스 항목은 생성 시점에 바로 completed
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("idx_ledger_account_status", "account_id", "status"),
        Index("idx_ledger_related", "related_type", "related_id"),
    )

    # 기본 키 - 자동 증가하는 고유 식별자
    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)

    # 계정 ID - accounts 테이블과의 외래키 관계
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)

    # 거래 유형 - LedgerKind 참고
    kind: Mapped[LedgerKind] = mapped_column(
        Enum(LedgerKind, native_enum=False, length=40, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    # 변동량 - 양수면 증가, 음수면 감소
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # 거래 설명 (예: "Compra do plano: Bronze")
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # 관련 엔티티 참조 - (plan, 12), (video, 7), (account, 3), (deposit, 5) 등
    related_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    related_id: Mapped[Optional[int]] = mapped_column(PrimaryKey, nullable=True)

    status: Mapped[LedgerStatus] = mapped_column(
        Enum(LedgerStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=LedgerStatus.COMPLETED,
        nullable=False,
    )

    # 멱등성 키 - 동일 키로 재시도해도 한 번만 기록됨
    # 형식 예시: "referral:42", "referral:quota:7:2025-03-01:15"
    event_key: Mapped[Optional[str]] = mapped_column(String(120), unique=True, nullable=True)

    # pending 항목이 completed/failed 로 전이된 시각
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, account_id={self.account_id}, kind={self.kind}, "
            f"amount={self.amount}, status={self.status})>"
        )
