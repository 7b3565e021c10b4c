import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from veedapi.models.base import BaseModel, Money, PrimaryKey


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _status_column():
    return mapped_column(
        Enum(RequestStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )


class DepositRequest(BaseModel):
    __tablename__ = "deposit_requests"

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)  # M-Pesa | e-Mola
    proof: Mapped[str] = mapped_column(Text, nullable=False)  # 영수증 이미지 URL 또는 텍스트
    transaction_ref: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[RequestStatus] = _status_column()
    ledger_entry_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )
    processed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class WithdrawalRequest(BaseModel):
    __tablename__ = "withdrawal_requests"

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(30), nullable=False)  # 송금 대상 번호
    status: Mapped[RequestStatus] = _status_column()
    # 요청 시점 정책 (on_request | on_approval) - 정책이 바뀌어도 기존 요청은 기록된 정책으로 처리
    debit_policy: Mapped[str] = mapped_column(String(20), nullable=False)
    ledger_entry_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )
    processed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
