import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from veedapi.config import Settings
from veedapi.core.exceptions import (
    AlreadySubscribedError,
    AuthorizationError,
    ConflictError,
    InsufficientBalanceError,
    InvalidAmountError,
    NotFoundError,
)
from veedapi.database.session import unit_of_work
from veedapi.models.account import Account as AccountModel
from veedapi.models.ledger import LedgerKind
from veedapi.repositories.account_repository import AccountRepository
from veedapi.repositories.catalog_repository import PlanRepository
from veedapi.schemas.catalog import Plan, PlanCreate, PlanUpdate, PurchaseResult
from veedapi.services.ledger_service import LedgerService
from veedapi.services.referral_service import ReferralService, purchase_event_key
from veedapi.utils.money import to_money
from veedapi.utils.timezone_utils import DayPolicy, ensure_aware

logger = logging.getLogger(__name__)


def plan_is_active(account: AccountModel, now: datetime, duration_model: str) -> bool:
    """계정이 현재 유효한 플랜을 보유하고 있는지 여부

    perpetual 모델에서는 만료가 없고, duration 모델에서는 plan_expires_at 이 지나면 비활성입니다.
    """
    if account.current_plan_id is None:
        return False
    if duration_model == "perpetual" or account.plan_expires_at is None:
        return True
    return ensure_aware(account.plan_expires_at) > now


class PlanService:
    """플랜 구독 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        day_policy: Optional[DayPolicy] = None,
        referral_service: Optional[ReferralService] = None,
    ):
        self.db = db
        self.settings = settings
        self.day_policy = day_policy or DayPolicy(settings.TIMEZONE)
        self.account_repo = AccountRepository(db)
        self.plan_repo = PlanRepository(db)
        self.ledger_service = LedgerService(db, self.day_policy)
        self.referral_service = referral_service or ReferralService(
            db, settings, self.day_policy
        )

    def purchase(self, account_id: int, plan_id: int) -> PurchaseResult:
        """플랜 구매

        잔액에서 플랜 가격을 차감하고 플랜을 활성화합니다.
        commit 후 추천인에게 구매 금액의 10% 를 별도 트랜잭션으로 지급합니다.

        Args:
            account_id: 구매 계정 ID
            plan_id: 플랜 ID

        Returns:
            PurchaseResult: 구매 결과 (구매 후 잔액, 만료 시각, 원장 ID)

        Raises:
            AlreadySubscribedError: 같은 플랜이 이미 활성 상태
            InsufficientBalanceError: 잔액 부족
        """
        with unit_of_work(self.db, "plan_purchase"):
            account = self.account_repo.get_for_update(account_id)
            if account is None:
                raise NotFoundError(f"Account not found: {account_id}")
            if not account.is_active:
                raise AuthorizationError("Account is blocked")

            plan = self.plan_repo.get_model(plan_id)
            if plan is None or not plan.is_active:
                raise NotFoundError(f"Plan not found: {plan_id}")

            now = self.day_policy.now()
            if account.current_plan_id == plan.id and plan_is_active(
                account, now, self.settings.PLAN_DURATION_MODEL
            ):
                raise AlreadySubscribedError(
                    f"Plan {plan.name} is already active",
                    details={"plan_id": plan.id},
                )

            cost = to_money(plan.cost)
            if Decimal(account.balance) < cost:
                raise InsufficientBalanceError(
                    f"Insufficient balance. Required: {cost}, Available: {account.balance}",
                    details={"required": str(cost), "available": str(account.balance)},
                )

            entry = self.ledger_service.debit(
                account,
                cost,
                LedgerKind.PLAN_PURCHASE,
                f"Compra do plano: {plan.name}",
                related_type="plan",
                related_id=plan.id,
            )

            account.current_plan_id = plan.id
            account.plan_activated_at = now
            account.plan_expires_at = (
                now + timedelta(days=plan.duration_days)
                if self.settings.PLAN_DURATION_MODEL == "duration"
                else None
            )
            account.plan_videos_per_day = plan.videos_per_day
            account.plan_daily_reward = to_money(plan.daily_reward)
            account.plan_purchase_entry_id = entry.id
            account.videos_watched_today = 0
            account.last_video_watch_date = None

            result = PurchaseResult(
                account_id=account.id,
                plan_id=plan.id,
                plan_name=plan.name,
                balance=to_money(account.balance),
                plan_activated_at=now,
                plan_expires_at=account.plan_expires_at,
                ledger_entry_id=entry.id,
            )
            referred_by_id = account.referred_by_id
            username = account.username

        logger.info(f"Account {account_id} purchased plan {plan_id} for {cost}")

        if referred_by_id is not None:
            bonus = self.referral_service.cascade(
                account_id,
                cost,
                self.settings.PLAN_REFERRAL_RATE,
                LedgerKind.REFERRAL_PLAN_BONUS,
                purchase_event_key(result.ledger_entry_id),
                f'Bônus de 10% pela compra do plano "{result.plan_name}" pelo usuário {username}',
            )
            if bonus is not None:
                result.referral_entry_id = bonus.id

        return result

    # ------------------------------------------------------------------
    # 관리자 플랜 관리
    # ------------------------------------------------------------------

    def create_plan(self, request: PlanCreate) -> Plan:
        """플랜 생성 (total_reward = daily_reward * duration_days)"""
        cost = to_money(request.cost)
        daily_reward = to_money(request.normalized_daily_reward())
        if cost <= 0 or daily_reward <= 0:
            raise InvalidAmountError("Plan cost and reward must be positive")

        with unit_of_work(self.db, "create_plan"):
            if self.plan_repo.get_model_by_name(request.name) is not None:
                raise ConflictError(f"Plan name already exists: {request.name}")

            plan = self.plan_repo.create(
                name=request.name,
                cost=cost,
                daily_reward=daily_reward,
                videos_per_day=request.videos_per_day,
                duration_days=request.duration_days,
                total_reward=to_money(daily_reward * request.duration_days),
                is_active=True,
            )

        logger.info(f"Created plan {plan.id} ({plan.name})")
        return Plan.model_validate(plan)

    def update_plan(self, plan_id: int, request: PlanUpdate) -> Plan:
        """플랜 수정 - 이미 구매한 계정의 조건(스냅샷)은 변경되지 않음"""
        changes = request.model_dump(exclude_unset=True)

        with unit_of_work(self.db, "update_plan"):
            plan = self.plan_repo.get_model(plan_id)
            if plan is None:
                raise NotFoundError(f"Plan not found: {plan_id}")

            new_name = changes.get("name")
            if new_name and new_name != plan.name:
                if self.plan_repo.get_model_by_name(new_name) is not None:
                    raise ConflictError(f"Plan name already exists: {new_name}")

            for field in ("cost", "daily_reward"):
                if field in changes:
                    changes[field] = to_money(changes[field])
                    if changes[field] <= 0:
                        raise InvalidAmountError(f"Plan {field} must be positive")

            for key, value in changes.items():
                if value is not None:
                    setattr(plan, key, value)

            plan.total_reward = to_money(Decimal(plan.daily_reward) * plan.duration_days)
            self.db.flush()

        logger.info(f"Updated plan {plan_id}: {list(changes.keys())}")
        return Plan.model_validate(plan)

    def delete_plan(self, plan_id: int) -> bool:
        """플랜 삭제 - 보유 계정이 있으면 거부 (비활성화는 update_plan 사용)"""
        with unit_of_work(self.db, "delete_plan"):
            plan = self.plan_repo.get_model(plan_id)
            if plan is None:
                raise NotFoundError(f"Plan not found: {plan_id}")

            holders = self.account_repo.count_subscribers(plan_id)
            if holders > 0:
                raise ConflictError(
                    f"Plan {plan_id} is held by {holders} accounts",
                    details={"plan_id": plan_id, "holders": holders},
                )

            self.plan_repo.delete_model(plan)

        logger.info(f"Deleted plan {plan_id}")
        return True

    def get_plan(self, plan_id: int) -> Plan:
        plan = self.plan_repo.get_by_id(plan_id)
        if plan is None:
            raise NotFoundError(f"Plan not found: {plan_id}")
        return plan

    def list_plans(self, active_only: bool = True) -> List[Plan]:
        return self.plan_repo.list_plans(active_only=active_only)
