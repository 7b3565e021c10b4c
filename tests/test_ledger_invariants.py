import random

import pytest
from decimal import Decimal

from veedapi.core.exceptions import BaseAPIException, StorageFailureError
from veedapi.repositories.watch_repository import WatchRecordRepository
from veedapi.schemas.ledger import AdminAdjustmentRequest
from veedapi.schemas.payment import DepositCreate, WithdrawalCreate
from veedapi.services.ledger_service import LedgerService
from veedapi.services.payment_service import PaymentService
from veedapi.services.plan_service import PlanService
from veedapi.services.video_reward_service import VideoRewardService

STEPS = 60


class Scenario:
    """무작위 연산 시퀀스 실행기 - 업무 규칙 위반 예외는 정상 결과로 간주"""

    def __init__(self, db, factory, settings, day_policy, clock, notifier, seed):
        self.db = db
        self.factory = factory
        self.clock = clock
        self.day_policy = day_policy
        self.rng = random.Random(seed)
        self.ledger = LedgerService(db, day_policy)
        self.plans = PlanService(db, settings, day_policy)
        self.rewards = VideoRewardService(db, settings, day_policy)
        self.payments = PaymentService(db, settings, day_policy, notifier=notifier)
        self.watch_repo = WatchRecordRepository(db)

        referrer = factory.account("referrer", balance="50")
        self.accounts = [referrer.id] + [
            factory.account(name, balance="120", referral_code=referrer.referral_code).id
            for name in ("ana", "bia")
        ]
        self.plan_ids = [
            factory.plan(name="Bronze", cost="100", daily_reward="30", videos_per_day=3).id,
            factory.plan(name="Prata", cost="60", daily_reward="12", videos_per_day=2).id,
        ]
        self.video_ids = [
            factory.video(title=f"v{i}", duration_seconds=30 + 10 * i).id for i in range(5)
        ]

    def money(self, low, high) -> Decimal:
        return Decimal(self.rng.randint(low * 100, high * 100)) / 100

    def step(self) -> str:
        op = self.rng.choice(
            [
                self.admin_credit,
                self.admin_debit,
                self.purchase,
                self.watch,
                self.watch,
                self.watch,
                self.deposit,
                self.resolve_deposit,
                self.withdraw,
                self.resolve_withdrawal,
                self.advance_clock,
            ]
        )
        try:
            op()
        except StorageFailureError:
            raise
        except BaseAPIException:
            pass
        return op.__name__

    def admin_credit(self):
        self.ledger.admin_adjust(
            AdminAdjustmentRequest(
                account_id=self.rng.choice(self.accounts),
                amount=self.money(1, 80),
                description="Crédito",
            )
        )

    def admin_debit(self):
        self.ledger.admin_adjust(
            AdminAdjustmentRequest(
                account_id=self.rng.choice(self.accounts),
                amount=-self.money(1, 80),
                description="Débito",
            )
        )

    def purchase(self):
        self.plans.purchase(self.rng.choice(self.accounts), self.rng.choice(self.plan_ids))

    def watch(self):
        self.rewards.watch(
            self.rng.choice(self.accounts),
            self.rng.choice(self.video_ids),
            watched_seconds=self.rng.choice([0, 45, 80]),
        )

    def deposit(self):
        self.payments.request_deposit(
            self.rng.choice(self.accounts),
            DepositCreate(amount=self.money(1, 150), method="M-Pesa", proof="recibo.png"),
        )

    def resolve_deposit(self):
        pending = self.payments.list_pending_deposits()
        if not pending:
            return
        request_id = self.rng.choice(pending).id
        if self.rng.random() < 0.7:
            self.payments.approve_deposit(request_id, admin_id=1)
        else:
            self.payments.reject_deposit(request_id, admin_id=1)

    def withdraw(self):
        self.payments.request_withdrawal(
            self.rng.choice(self.accounts),
            WithdrawalCreate(amount=self.money(1, 90), method="e-Mola", phone_number="841234567"),
        )

    def resolve_withdrawal(self):
        pending = self.payments.list_pending_withdrawals()
        if not pending:
            return
        request_id = self.rng.choice(pending).id
        if self.rng.random() < 0.6:
            self.payments.approve_withdrawal(request_id, admin_id=1)
        else:
            self.payments.reject_withdrawal(request_id, admin_id=1)

    def advance_clock(self):
        self.clock.advance(hours=self.rng.choice([1, 6, 14, 30]))

    def assert_invariants(self, op_name: str):
        integrity = self.ledger.verify_global_integrity()
        assert integrity.status == "OK", f"ledger mismatch after {op_name}: {integrity}"

        today = self.day_policy.current_day()
        for account_id in self.accounts:
            account = self.factory.model(account_id)
            assert account.balance >= 0, f"negative balance after {op_name}"
            quota = account.plan_videos_per_day or 0
            assert account.videos_watched_today <= quota, f"counter over quota after {op_name}"
            watched, _ = self.watch_repo.cycle_totals(
                account_id, today, account.plan_purchase_entry_id
            )
            assert watched <= quota, f"rewarded watches over quota after {op_name}"


class TestLedgerInvariants:
    """무작위 연산 시퀀스에 대해 잔액 == completed 원장 합계, 할당량 불변식 검증"""

    @pytest.mark.parametrize("seed", range(6))
    @pytest.mark.parametrize("withdrawal_policy", ["on_request", "on_approval"])
    @pytest.mark.parametrize("cascade_mode", ["per_video", "on_quota_complete"])
    def test_random_operation_sequences(
        self, db, factory, make_settings, day_policy, clock, notifier,
        seed, withdrawal_policy, cascade_mode,
    ):
        # Given
        settings = make_settings(
            WITHDRAWAL_DEBIT_POLICY=withdrawal_policy, REFERRAL_CASCADE_MODE=cascade_mode
        )
        scenario = Scenario(db, factory, settings, day_policy, clock, notifier, seed)
        scenario.assert_invariants("setup")

        # When / Then: 매 연산 후 불변식 유지
        for _ in range(STEPS):
            op_name = scenario.step()
            scenario.assert_invariants(op_name)
