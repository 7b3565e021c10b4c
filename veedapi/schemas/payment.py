from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from veedapi.models.payment import RequestStatus


class DepositCreate(BaseModel):
    """입금 요청 - 금액 양수 검증은 서비스에서 InvalidAmountError 로 처리"""

    amount: Decimal
    method: str = Field(..., description="M-Pesa 또는 e-Mola")
    proof: str = Field(..., min_length=1, description="영수증 이미지 URL 또는 텍스트")
    transaction_ref: Optional[str] = Field(None, max_length=100)


class WithdrawalCreate(BaseModel):
    amount: Decimal
    method: str = Field(..., description="M-Pesa 또는 e-Mola")
    phone_number: str = Field(..., min_length=6, max_length=30)


class DepositRequest(BaseModel):
    id: int
    account_id: int
    amount: Decimal
    method: str
    proof: str
    transaction_ref: Optional[str] = None
    status: RequestStatus
    ledger_entry_id: Optional[int] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WithdrawalRequest(BaseModel):
    id: int
    account_id: int
    amount: Decimal
    method: str
    phone_number: str
    status: RequestStatus
    debit_policy: str
    ledger_entry_id: Optional[int] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentDecision(BaseModel):
    """승인/거절 처리 결과"""

    request_id: int
    status: RequestStatus
    account_id: int
    amount: Decimal
    balance: Decimal = Field(..., description="처리 후 계정 잔액")
    message: str
