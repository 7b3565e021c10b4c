from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from veedapi.models.ledger import LedgerKind, LedgerStatus


class BalanceResponse(BaseModel):
    """잔액 응답"""

    account_id: int = Field(..., description="계정 ID")
    balance: Decimal = Field(..., description="현재 잔액")

    class Config:
        from_attributes = True


class LedgerEntry(BaseModel):
    """원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    account_id: int
    kind: LedgerKind = Field(..., description="거래 유형")
    amount: Decimal = Field(..., description="변동량 (부호 포함)")
    description: str
    related_type: Optional[str] = None
    related_id: Optional[int] = None
    status: LedgerStatus
    event_key: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LedgerHistoryResponse(BaseModel):
    """원장 조회 응답"""

    balance: Decimal = Field(..., description="현재 잔액")
    entries: List[LedgerEntry] = Field(..., description="원장 항목 목록 (최신순)")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class AdminAdjustmentRequest(BaseModel):
    """관리자 잔액 조정 요청"""

    account_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., description="조정 금액 (양수: 추가, 음수: 차감)")
    description: str = Field(..., min_length=1, max_length=255)
    force: bool = Field(False, description="잔액이 음수가 되는 차감 허용 (관리자 오버라이드)")


class IntegrityCheckResponse(BaseModel):
    """잔액 정합성 검증 응답"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    account_id: Optional[int] = Field(None, description="계정 ID (단일 계정 검증 시)")
    recorded_balance: Decimal = Field(..., description="accounts.balance 값 (합계)")
    ledger_balance: Decimal = Field(..., description="completed 원장 합계")
    entry_count: int = Field(..., description="completed 항목 수")
    account_count: Optional[int] = Field(None, description="계정 수 (전체 검증 시)")
    mismatched_account_ids: List[int] = Field(default_factory=list)
    verified_at: datetime
