"""
잔액 원장 서비스

모든 잔액 변동은 이 서비스를 통해서만 일어납니다.
credit/debit/record_pending/resolve_pending 은 flush 까지만 수행하며,
commit 은 이를 호출한 상위 연산(구매, 시청, 입출금 처리)이 unit_of_work 로 담당합니다.
호출자는 계정 행을 잠근 상태(get_for_update)로 Account 모델을 넘겨야 합니다.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from veedapi.core.exceptions import (
    AlreadyProcessedError,
    InsufficientBalanceError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)
from veedapi.database.session import unit_of_work
from veedapi.models.account import Account as AccountModel
from veedapi.models.ledger import LedgerEntry as LedgerEntryModel, LedgerKind, LedgerStatus
from veedapi.repositories.account_repository import AccountRepository
from veedapi.repositories.ledger_repository import LedgerRepository
from veedapi.schemas.ledger import (
    AdminAdjustmentRequest,
    BalanceResponse,
    IntegrityCheckResponse,
    LedgerEntry,
    LedgerHistoryResponse,
)
from veedapi.utils.money import to_money
from veedapi.utils.timezone_utils import DayPolicy

logger = logging.getLogger(__name__)


class LedgerService:
    """계정 원장 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(self, db: Session, day_policy: Optional[DayPolicy] = None):
        self.db = db
        self.day_policy = day_policy or DayPolicy()
        self.ledger_repo = LedgerRepository(db)
        self.account_repo = AccountRepository(db)

    # ------------------------------------------------------------------
    # 원장 기본 연산 (flush only)
    # ------------------------------------------------------------------

    def credit(
        self,
        account: AccountModel,
        amount,
        kind: LedgerKind,
        description: str,
        related_type: Optional[str] = None,
        related_id: Optional[int] = None,
        event_key: Optional[str] = None,
    ) -> LedgerEntryModel:
        """잔액 증가 + completed 원장 기록

        Args:
            account: 잠금 상태의 계정 모델
            amount: 증가 금액 (양수)
            kind: 원장 유형
            description: 원장 설명
            related_type / related_id: 관련 엔티티
            event_key: 멱등성 키 - 이미 기록된 키면 기존 항목을 그대로 반환

        Returns:
            LedgerEntryModel: 생성된 (또는 기존) 원장 항목
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError(details={"amount": str(amount)})

        if event_key:
            existing = self.ledger_repo.get_by_event_key(event_key)
            if existing is not None:
                logger.info(f"Ledger event {event_key} already recorded as entry {existing.id}")
                return existing

        account.balance = to_money(Decimal(account.balance) + amount)
        entry = self.ledger_repo.create(
            account_id=account.id,
            kind=kind,
            amount=amount,
            description=description,
            related_type=related_type,
            related_id=related_id,
            status=LedgerStatus.COMPLETED,
            event_key=event_key,
        )
        logger.info(
            f"Credited {amount} ({kind.value}) to account {account.id}, balance {account.balance}"
        )
        return entry

    def debit(
        self,
        account: AccountModel,
        amount,
        kind: LedgerKind,
        description: str,
        related_type: Optional[str] = None,
        related_id: Optional[int] = None,
        allow_negative: bool = False,
    ) -> LedgerEntryModel:
        """잔액 차감 + completed 음수 원장 기록

        allow_negative 는 관리자 조정(force)에서만 사용합니다.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError(details={"amount": str(amount)})

        current = Decimal(account.balance)
        if not allow_negative and current < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance. Required: {amount}, Available: {current}",
                details={"required": str(amount), "available": str(current)},
            )

        account.balance = to_money(current - amount)
        entry = self.ledger_repo.create(
            account_id=account.id,
            kind=kind,
            amount=-amount,
            description=description,
            related_type=related_type,
            related_id=related_id,
            status=LedgerStatus.COMPLETED,
        )
        logger.info(
            f"Debited {amount} ({kind.value}) from account {account.id}, balance {account.balance}"
        )
        return entry

    def record_pending(
        self,
        account: AccountModel,
        amount,
        kind: LedgerKind,
        description: str,
        related_type: Optional[str] = None,
        related_id: Optional[int] = None,
    ) -> LedgerEntryModel:
        """pending 원장 기록 - 잔액은 변하지 않음 (amount 는 부호 포함)"""
        amount = to_money(amount)
        if amount == 0:
            raise InvalidAmountError(details={"amount": str(amount)})

        entry = self.ledger_repo.create(
            account_id=account.id,
            kind=kind,
            amount=amount,
            description=description,
            related_type=related_type,
            related_id=related_id,
            status=LedgerStatus.PENDING,
        )
        logger.info(f"Recorded pending {kind.value} {amount} for account {account.id}")
        return entry

    def resolve_pending(
        self, entry_id: int, new_status: LedgerStatus, allow_negative: bool = False
    ) -> LedgerEntryModel:
        """pending 항목을 completed 또는 failed 로 전이

        completed 로 전이하면 항목의 부호 있는 금액이 같은 트랜잭션에서 잔액에 반영됩니다.
        failed 는 잔액을 변경하지 않습니다.

        Args:
            entry_id: 원장 항목 ID
            new_status: COMPLETED 또는 FAILED
            allow_negative: 이미 선차감(hold)된 금액을 확정할 때 음수 잔액 검사 생략
        """
        if new_status not in (LedgerStatus.COMPLETED, LedgerStatus.FAILED):
            raise ValidationError(f"Cannot resolve ledger entry to {new_status}")

        entry = self.ledger_repo.get_for_update(entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry not found: {entry_id}")
        if entry.status != LedgerStatus.PENDING:
            raise AlreadyProcessedError(
                f"Ledger entry {entry_id} is already {entry.status.value}",
                details={"entry_id": entry_id, "status": entry.status.value},
            )

        if new_status == LedgerStatus.COMPLETED:
            account = self.account_repo.get_for_update(entry.account_id)
            current = Decimal(account.balance)
            new_balance = to_money(current + Decimal(entry.amount))
            if new_balance < 0 and not allow_negative:
                raise InsufficientBalanceError(
                    f"Insufficient balance. Required: {-entry.amount}, Available: {current}",
                    details={"required": str(-entry.amount), "available": str(current)},
                )
            account.balance = new_balance

        entry.status = new_status
        entry.resolved_at = self.day_policy.now()
        self.db.flush()

        logger.info(f"Resolved ledger entry {entry_id} to {new_status.value}")
        return entry

    # ------------------------------------------------------------------
    # 관리자 / 조회
    # ------------------------------------------------------------------

    def admin_adjust(
        self, request: AdminAdjustmentRequest, admin_id: Optional[int] = None
    ) -> LedgerEntry:
        """관리자 잔액 조정 (양수: 추가, 음수: 차감)

        Args:
            request: 조정 요청 (force=True 면 잔액이 음수가 되는 차감 허용)
            admin_id: 처리한 관리자 계정 ID

        Returns:
            LedgerEntry: 생성된 원장 항목
        """
        amount = to_money(request.amount)
        if amount == 0:
            raise InvalidAmountError("Adjustment amount cannot be zero")

        with unit_of_work(self.db, "admin_adjust"):
            account = self.account_repo.get_for_update(request.account_id)
            if account is None:
                raise NotFoundError(f"Account not found: {request.account_id}")

            if amount > 0:
                entry = self.credit(
                    account,
                    amount,
                    LedgerKind.MANUAL_CREDIT,
                    request.description,
                    related_type="admin" if admin_id else None,
                    related_id=admin_id,
                )
            else:
                entry = self.debit(
                    account,
                    -amount,
                    LedgerKind.MANUAL_DEBIT,
                    request.description,
                    related_type="admin" if admin_id else None,
                    related_id=admin_id,
                    allow_negative=request.force,
                )

        logger.info(
            f"Admin {admin_id} adjusted account {request.account_id} by {amount}: {request.description}"
        )
        return LedgerEntry.model_validate(entry)

    def get_balance(self, account_id: int) -> BalanceResponse:
        """계정 잔액 조회"""
        account = self.account_repo.get_model(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return BalanceResponse(account_id=account.id, balance=to_money(account.balance))

    def get_history(
        self, account_id: int, limit: int = 50, offset: int = 0
    ) -> LedgerHistoryResponse:
        """계정 원장 내역 조회

        Args:
            account_id: 계정 ID
            limit: 페이지 크기 (최대 100)
            offset: 오프셋

        Returns:
            LedgerHistoryResponse: 최신순 원장 내역
        """
        if limit > 100:
            limit = 100

        balance = self.get_balance(account_id).balance
        entries = self.ledger_repo.get_user_entries(account_id, limit=limit, offset=offset)
        total_count = self.ledger_repo.count_for_account(account_id)

        return LedgerHistoryResponse(
            balance=balance,
            entries=entries,
            total_count=total_count,
            has_next=offset + len(entries) < total_count,
        )

    def verify_integrity(self, account_id: int) -> IntegrityCheckResponse:
        """accounts.balance 와 completed 원장 합계 비교"""
        account = self.account_repo.get_model(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")

        recorded = to_money(account.balance)
        ledger_total = to_money(self.ledger_repo.completed_sum(account_id))
        status = "OK" if recorded == ledger_total else "MISMATCH"

        if status != "OK":
            logger.warning(
                f"Balance mismatch for account {account_id}: recorded={recorded}, ledger={ledger_total}"
            )

        return IntegrityCheckResponse(
            status=status,
            account_id=account_id,
            recorded_balance=recorded,
            ledger_balance=ledger_total,
            entry_count=self.ledger_repo.completed_count(account_id),
            mismatched_account_ids=[] if status == "OK" else [account_id],
            verified_at=self.day_policy.now(),
        )

    def verify_global_integrity(self) -> IntegrityCheckResponse:
        """전체 계정 정합성 검증"""
        sums = self.ledger_repo.completed_sums_by_account()
        recorded_total = Decimal("0.00")
        ledger_total = Decimal("0.00")
        mismatched = []
        rows = self.account_repo.all_balances()

        for account_id, balance in rows:
            recorded = to_money(balance)
            expected = to_money(sums.get(account_id, Decimal("0.00")))
            recorded_total += recorded
            ledger_total += expected
            if recorded != expected:
                mismatched.append(account_id)

        if mismatched:
            logger.warning(f"Global balance check found {len(mismatched)} mismatched accounts: {mismatched}")

        return IntegrityCheckResponse(
            status="OK" if not mismatched else "MISMATCH",
            recorded_balance=to_money(recorded_total),
            ledger_balance=to_money(ledger_total),
            entry_count=self.ledger_repo.count({"status": LedgerStatus.COMPLETED}),
            account_count=len(rows),
            mismatched_account_ids=mismatched,
            verified_at=self.day_policy.now(),
        )
