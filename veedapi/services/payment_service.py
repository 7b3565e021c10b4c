"""
입금/출금 승인 워크플로우

요청 상태: pending -> approved | rejected (종료 상태)

입금:
- 요청 시 pending 원장 항목만 기록 (잔액 변화 없음)
- 승인 시 항목을 completed 로 전이하며 잔액에 반영, 거절 시 failed

출금 (WITHDRAWAL_DEBIT_POLICY):
- on_request: 요청 시 withdrawal_hold 로 선차감 + pending withdrawal 기록
  승인 시 withdrawal_hold_release 로 선차감 해제 후 withdrawal 을 completed 로 전이 (순변화 0)
  거절 시 withdrawal 을 failed 로 전이하고 withdrawal_refund 로 환불
- on_approval: 요청 시 pending 만 기록, 승인 시 잔액 재확인
  부족하면 자동 거절(failed) 후 commit 하고 InsufficientBalanceError
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from veedapi.config import Settings
from veedapi.core.exceptions import (
    AlreadyProcessedError,
    AuthorizationError,
    InsufficientBalanceError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)
from veedapi.database.session import unit_of_work
from veedapi.models.ledger import LedgerKind, LedgerStatus
from veedapi.models.payment import RequestStatus
from veedapi.repositories.account_repository import AccountRepository
from veedapi.repositories.payment_repository import (
    DepositRepository,
    WithdrawalRepository,
)
from veedapi.schemas.payment import (
    DepositCreate,
    DepositRequest,
    PaymentDecision,
    WithdrawalCreate,
    WithdrawalRequest,
)
from veedapi.services.ledger_service import LedgerService
from veedapi.services.notification_service import NotificationService
from veedapi.utils.money import to_money
from veedapi.utils.timezone_utils import DayPolicy

logger = logging.getLogger(__name__)


class PaymentService:
    """입출금 요청 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        day_policy: Optional[DayPolicy] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.settings = settings
        self.day_policy = day_policy or DayPolicy(settings.TIMEZONE)
        self.account_repo = AccountRepository(db)
        self.deposit_repo = DepositRepository(db)
        self.withdrawal_repo = WithdrawalRepository(db)
        self.ledger_service = LedgerService(db, self.day_policy)
        self.notifier = notifier or NotificationService(settings)

    def _validate(self, amount, method: str) -> Decimal:
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError(details={"amount": str(amount)})
        if method not in self.settings.PAYMENT_METHODS:
            raise ValidationError(
                f"Unsupported payment method: {method}",
                details={"allowed": self.settings.PAYMENT_METHODS},
            )
        return amount

    def _load_account(self, account_id: int):
        account = self.account_repo.get_for_update(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        if not account.is_active:
            raise AuthorizationError("Account is blocked")
        return account

    # ------------------------------------------------------------------
    # 입금
    # ------------------------------------------------------------------

    def request_deposit(self, account_id: int, request: DepositCreate) -> DepositRequest:
        """입금 요청 생성 - 관리자 승인 전까지 잔액 변화 없음"""
        amount = self._validate(request.amount, request.method)

        with unit_of_work(self.db, "request_deposit"):
            account = self._load_account(account_id)
            deposit = self.deposit_repo.create(
                account_id=account.id,
                amount=amount,
                method=request.method,
                proof=request.proof,
                transaction_ref=request.transaction_ref,
                status=RequestStatus.PENDING,
            )
            entry = self.ledger_service.record_pending(
                account,
                amount,
                LedgerKind.DEPOSIT,
                f"Solicitação de depósito via {request.method}",
                related_type="deposit",
                related_id=deposit.id,
            )
            deposit.ledger_entry_id = entry.id
            self.db.flush()

        logger.info(f"Deposit request {deposit.id} created for account {account_id}: {amount} via {request.method}")
        return DepositRequest.model_validate(deposit)

    def approve_deposit(self, request_id: int, admin_id: Optional[int] = None) -> PaymentDecision:
        """입금 승인 - pending 항목을 completed 로 전이하여 잔액에 반영"""
        with unit_of_work(self.db, "approve_deposit"):
            deposit = self._pending_deposit(request_id)
            self.ledger_service.resolve_pending(deposit.ledger_entry_id, LedgerStatus.COMPLETED)
            self._mark_processed(deposit, RequestStatus.APPROVED, admin_id)
            account = self.account_repo.get_model(deposit.account_id)
            decision = self._decision(deposit, account.balance, "Deposit approved")
            email = account.email
            amount = to_money(deposit.amount)

        logger.info(f"Deposit {request_id} approved by {admin_id}: +{amount} to account {deposit.account_id}")
        self.notifier.send_deposit_approved(email, amount)
        return decision

    def reject_deposit(self, request_id: int, admin_id: Optional[int] = None) -> PaymentDecision:
        with unit_of_work(self.db, "reject_deposit"):
            deposit = self._pending_deposit(request_id)
            self.ledger_service.resolve_pending(deposit.ledger_entry_id, LedgerStatus.FAILED)
            self._mark_processed(deposit, RequestStatus.REJECTED, admin_id)
            account = self.account_repo.get_model(deposit.account_id)
            decision = self._decision(deposit, account.balance, "Deposit rejected")

        logger.info(f"Deposit {request_id} rejected by {admin_id}")
        return decision

    def _pending_deposit(self, request_id: int):
        deposit = self.deposit_repo.get_model_for_update(request_id)
        if deposit is None:
            raise NotFoundError(f"Deposit request not found: {request_id}")
        if deposit.status != RequestStatus.PENDING:
            raise AlreadyProcessedError(
                f"Deposit request {request_id} is already {deposit.status.value}"
            )
        return deposit

    # ------------------------------------------------------------------
    # 출금
    # ------------------------------------------------------------------

    def request_withdrawal(
        self, account_id: int, request: WithdrawalCreate
    ) -> WithdrawalRequest:
        """출금 요청 생성

        Raises:
            InsufficientBalanceError: 잔액 < 요청 금액
        """
        amount = self._validate(request.amount, request.method)
        policy = self.settings.WITHDRAWAL_DEBIT_POLICY

        with unit_of_work(self.db, "request_withdrawal"):
            account = self._load_account(account_id)
            if Decimal(account.balance) < amount:
                raise InsufficientBalanceError(
                    f"Insufficient balance. Required: {amount}, Available: {account.balance}",
                    details={"required": str(amount), "available": str(account.balance)},
                )

            withdrawal = self.withdrawal_repo.create(
                account_id=account.id,
                amount=amount,
                method=request.method,
                phone_number=request.phone_number,
                status=RequestStatus.PENDING,
                debit_policy=policy,
            )
            if policy == "on_request":
                self.ledger_service.debit(
                    account,
                    amount,
                    LedgerKind.WITHDRAWAL_HOLD,
                    f"Reserva de levantamento via {request.method} para {request.phone_number}",
                    related_type="withdrawal",
                    related_id=withdrawal.id,
                )
            entry = self.ledger_service.record_pending(
                account,
                -amount,
                LedgerKind.WITHDRAWAL,
                f"Solicitação de levantamento via {request.method} para {request.phone_number}",
                related_type="withdrawal",
                related_id=withdrawal.id,
            )
            withdrawal.ledger_entry_id = entry.id
            self.db.flush()

        logger.info(
            f"Withdrawal request {withdrawal.id} created for account {account_id}: {amount} ({policy})"
        )
        return WithdrawalRequest.model_validate(withdrawal)

    def approve_withdrawal(
        self, request_id: int, admin_id: Optional[int] = None
    ) -> PaymentDecision:
        """출금 승인 (실제 송금은 관리자가 외부에서 처리)

        Raises:
            InsufficientBalanceError: on_approval 정책에서 승인 시점 잔액 부족 (요청은 자동 거절됨)
        """
        with unit_of_work(self.db, "approve_withdrawal"):
            withdrawal = self._pending_withdrawal(request_id)
            account = self.account_repo.get_for_update(withdrawal.account_id)
            amount = to_money(withdrawal.amount)
            available = to_money(account.balance)

            auto_rejected = withdrawal.debit_policy == "on_approval" and available < amount
            if auto_rejected:
                self.ledger_service.resolve_pending(withdrawal.ledger_entry_id, LedgerStatus.FAILED)
                self._mark_processed(withdrawal, RequestStatus.REJECTED, admin_id)
            else:
                if withdrawal.debit_policy == "on_request":
                    self.ledger_service.credit(
                        account,
                        amount,
                        LedgerKind.WITHDRAWAL_HOLD_RELEASE,
                        "Liberação da reserva de levantamento aprovado",
                        related_type="withdrawal",
                        related_id=withdrawal.id,
                    )
                # on_request 는 요청 시 이미 선차감되어 승인 시점 잔액을 다시 검사하지 않음
                self.ledger_service.resolve_pending(
                    withdrawal.ledger_entry_id,
                    LedgerStatus.COMPLETED,
                    allow_negative=withdrawal.debit_policy == "on_request",
                )
                self._mark_processed(withdrawal, RequestStatus.APPROVED, admin_id)
                decision = self._decision(withdrawal, account.balance, "Withdrawal approved")

        if auto_rejected:
            logger.warning(
                f"Withdrawal {request_id} auto-rejected: balance {available} < {amount}"
            )
            raise InsufficientBalanceError(
                f"Levantamento falhou: saldo insuficiente no momento da aprovação. "
                f"Required: {amount}, Available: {available}",
                details={"required": str(amount), "available": str(available)},
            )

        logger.info(
            f"Withdrawal {request_id} approved by {admin_id}: -{amount} from account {withdrawal.account_id}"
        )
        return decision

    def reject_withdrawal(
        self, request_id: int, admin_id: Optional[int] = None
    ) -> PaymentDecision:
        """출금 거절 - on_request 정책이면 선차감 금액 환불"""
        with unit_of_work(self.db, "reject_withdrawal"):
            withdrawal = self._pending_withdrawal(request_id)
            account = self.account_repo.get_for_update(withdrawal.account_id)

            self.ledger_service.resolve_pending(withdrawal.ledger_entry_id, LedgerStatus.FAILED)
            if withdrawal.debit_policy == "on_request":
                self.ledger_service.credit(
                    account,
                    withdrawal.amount,
                    LedgerKind.WITHDRAWAL_REFUND,
                    "Reembolso de levantamento rejeitado",
                    related_type="withdrawal",
                    related_id=withdrawal.id,
                )
            self._mark_processed(withdrawal, RequestStatus.REJECTED, admin_id)
            decision = self._decision(withdrawal, account.balance, "Withdrawal rejected")

        logger.info(f"Withdrawal {request_id} rejected by {admin_id}")
        return decision

    def _pending_withdrawal(self, request_id: int):
        withdrawal = self.withdrawal_repo.get_model_for_update(request_id)
        if withdrawal is None:
            raise NotFoundError(f"Withdrawal request not found: {request_id}")
        if withdrawal.status != RequestStatus.PENDING:
            raise AlreadyProcessedError(
                f"Withdrawal request {request_id} is already {withdrawal.status.value}"
            )
        return withdrawal

    # ------------------------------------------------------------------
    # 공통 / 조회
    # ------------------------------------------------------------------

    def _mark_processed(self, request, status: RequestStatus, admin_id: Optional[int]) -> None:
        request.status = status
        request.processed_by = admin_id
        request.processed_at = self.day_policy.now()
        self.db.flush()

    def _decision(self, request, balance, message: str) -> PaymentDecision:
        return PaymentDecision(
            request_id=request.id,
            status=request.status,
            account_id=request.account_id,
            amount=to_money(request.amount),
            balance=to_money(balance),
            message=message,
        )

    def list_pending_deposits(self) -> List[DepositRequest]:
        return self.deposit_repo.list_pending()

    def list_pending_withdrawals(self) -> List[WithdrawalRequest]:
        return self.withdrawal_repo.list_pending()
