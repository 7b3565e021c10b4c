"""
추천 보너스 서비스

추천인 보너스는 부모 연산(플랜 구매, 영상 보상)이 commit 된 뒤 별도 트랜잭션으로 지급됩니다.
- 보너스 지급 실패는 부모 연산을 되돌리지 않음 (로그 후 무시)
- event_key 로 멱등성을 보장하므로 retry_cascade 로 안전하게 재시도 가능
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from veedapi.config import Settings
from veedapi.core.exceptions import NotFoundError, ValidationError
from veedapi.database.session import unit_of_work
from veedapi.models.ledger import LedgerEntry as LedgerEntryModel, LedgerKind, LedgerStatus
from veedapi.repositories.account_repository import AccountRepository
from veedapi.repositories.ledger_repository import LedgerRepository
from veedapi.repositories.watch_repository import WatchRecordRepository
from veedapi.schemas.account import ReferralSummary
from veedapi.schemas.ledger import LedgerEntry
from veedapi.services.ledger_service import LedgerService
from veedapi.utils.money import apply_rate, to_money
from veedapi.utils.timezone_utils import DayPolicy

logger = logging.getLogger(__name__)

REFERRAL_BONUS_KINDS = (LedgerKind.REFERRAL_PLAN_BONUS, LedgerKind.REFERRAL_DAILY_BONUS)


def purchase_event_key(purchase_entry_id: int) -> str:
    return f"referral:{purchase_entry_id}"


def reward_event_key(reward_entry_id: int) -> str:
    return f"referral:{reward_entry_id}"


def quota_event_key(account_id: int, watch_day: date, plan_purchase_entry_id: Optional[int]) -> str:
    """같은 날 플랜을 다시 구매하면 새 주기로 취급하여 별도 키"""
    return f"referral:quota:{account_id}:{watch_day.isoformat()}:{plan_purchase_entry_id}"


class ReferralService:
    """추천 보너스 관련 비즈니스 로직을 담당하는 서비스"""

    def __init__(
        self, db: Session, settings: Settings, day_policy: Optional[DayPolicy] = None
    ):
        self.db = db
        self.settings = settings
        self.day_policy = day_policy or DayPolicy(settings.TIMEZONE)
        self.account_repo = AccountRepository(db)
        self.ledger_repo = LedgerRepository(db)
        self.watch_repo = WatchRecordRepository(db)
        self.ledger_service = LedgerService(db, self.day_policy)

    def cascade(
        self,
        source_account_id: int,
        base_amount,
        rate,
        bonus_kind: LedgerKind,
        event_key: str,
        description: str,
    ) -> Optional[LedgerEntryModel]:
        """추천인에게 base_amount * rate 지급 (실패 시 로그 후 None)

        Args:
            source_account_id: 보너스를 발생시킨 (추천받은) 계정
            base_amount: 기준 금액 (구매 금액, 영상 보상 등)
            rate: 보너스 비율
            bonus_kind: referral_plan_bonus | referral_daily_bonus
            event_key: 멱등성 키
            description: 원장 설명

        Returns:
            LedgerEntryModel: 지급된 보너스 항목, 추천인이 없거나 실패하면 None
        """
        try:
            with unit_of_work(self.db, "referral_cascade"):
                entry = self._apply_cascade(
                    source_account_id, base_amount, rate, bonus_kind, event_key, description
                )
            return entry
        except Exception as e:
            logger.warning(
                f"Referral cascade {event_key} for account {source_account_id} failed: {str(e)}"
            )
            return None

    def _apply_cascade(
        self,
        source_account_id: int,
        base_amount,
        rate,
        bonus_kind: LedgerKind,
        event_key: str,
        description: str,
    ) -> Optional[LedgerEntryModel]:
        source = self.account_repo.get_model(source_account_id)
        if source is None or source.referred_by_id is None:
            return None

        referrer = self.account_repo.get_for_update(source.referred_by_id)
        if referrer is None:
            logger.warning(
                f"Referrer {source.referred_by_id} of account {source_account_id} not found, skipping {event_key}"
            )
            return None

        bonus = apply_rate(base_amount, rate)
        if bonus <= 0:
            logger.info(f"Referral bonus for {event_key} rounds to zero, skipping")
            return None

        return self.ledger_service.credit(
            referrer,
            bonus,
            bonus_kind,
            description,
            related_type="account",
            related_id=source.id,
            event_key=event_key,
        )

    def quota_description(self, username: str) -> str:
        return f"Bônus de 5% da renda diária do indicado {username} por completar os vídeos do dia"

    def retry_cascade(self, primary_entry_id: int) -> Optional[LedgerEntry]:
        """commit 된 구매/보상 항목의 추천 보너스를 다시 계산하여 지급 (멱등)

        이미 지급된 경우 기존 보너스 항목을 반환합니다.
        재시도 경로에서는 실패를 삼키지 않고 그대로 전파합니다.
        """
        primary = self.ledger_repo.get_model(primary_entry_id)
        if primary is None:
            raise NotFoundError(f"Ledger entry not found: {primary_entry_id}")
        if primary.status != LedgerStatus.COMPLETED:
            raise ValidationError(
                f"Ledger entry {primary_entry_id} is not completed",
                details={"status": primary.status.value},
            )

        source = self.account_repo.get_model(primary.account_id)
        username = source.username if source else str(primary.account_id)

        with unit_of_work(self.db, "referral_cascade_retry"):
            if primary.kind == LedgerKind.PLAN_PURCHASE:
                entry = self._apply_cascade(
                    primary.account_id,
                    -Decimal(primary.amount),
                    self.settings.PLAN_REFERRAL_RATE,
                    LedgerKind.REFERRAL_PLAN_BONUS,
                    purchase_event_key(primary.id),
                    f"Bônus de 10% pela compra de plano pelo usuário {username}",
                )
            elif primary.kind == LedgerKind.VIDEO_REWARD:
                entry = self._retry_video_cascade(primary, username)
            else:
                raise ValidationError(
                    f"Ledger entry kind {primary.kind.value} does not cascade",
                    details={"entry_id": primary_entry_id},
                )

        logger.info(f"Retried referral cascade for entry {primary_entry_id}: {entry.id if entry else None}")
        return LedgerEntry.model_validate(entry) if entry else None

    def _retry_video_cascade(
        self, primary: LedgerEntryModel, username: str
    ) -> Optional[LedgerEntryModel]:
        if self.settings.REFERRAL_CASCADE_MODE == "per_video":
            return self._apply_cascade(
                primary.account_id,
                primary.amount,
                self.settings.VIDEO_REFERRAL_RATE,
                LedgerKind.REFERRAL_DAILY_BONUS,
                reward_event_key(primary.id),
                f"Bônus de 5% da renda diária do indicado {username} por assistir vídeo",
            )

        # on_quota_complete: 시청 당시 구독 주기의 할당량을 모두 채운 경우에만 지급
        record = self.watch_repo.get_by_ledger_entry(primary.id)
        if record is None:
            raise NotFoundError(f"Watch record for ledger entry {primary.id} not found")

        watched, total = self.watch_repo.cycle_totals(
            primary.account_id, record.watch_day, record.plan_purchase_entry_id
        )
        if watched < record.daily_quota:
            logger.info(
                f"Quota not completed for account {primary.account_id} on {record.watch_day}, nothing to retry"
            )
            return None

        return self._apply_cascade(
            primary.account_id,
            total,
            self.settings.VIDEO_REFERRAL_RATE,
            LedgerKind.REFERRAL_DAILY_BONUS,
            quota_event_key(primary.account_id, record.watch_day, record.plan_purchase_entry_id),
            self.quota_description(username),
        )

    def get_referral_summary(self, account_id: int) -> ReferralSummary:
        """추천 코드, 추천 링크, 추천한 계정 목록, 누적 추천 수익 조회"""
        account = self.account_repo.get_model(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")

        base_url = self.settings.PUBLIC_BASE_URL.rstrip("/")
        return ReferralSummary(
            referral_code=account.referral_code,
            referral_link=f"{base_url}/register?ref={account.referral_code}",
            referred_accounts=self.account_repo.list_referred(account_id),
            total_earnings=to_money(
                self.ledger_repo.sum_by_kinds(account_id, REFERRAL_BONUS_KINDS)
            ),
        )
