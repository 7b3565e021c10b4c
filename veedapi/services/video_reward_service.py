"""
일일 영상 보상 서비스

계정별/날짜별(Africa/Maputo) 시청 상태: NOT_STARTED -> IN_PROGRESS -> COMPLETE
- 날짜가 바뀐 뒤 첫 접근 시 카운터를 0 으로 되돌림 (lazy rollover, 스케줄러 없음)
- 같은 영상은 하루 1회만 보상 (watch_records 유니크 제약이 최종 보장)
- 보상 지급 commit 후 추천인 보너스를 별도 트랜잭션으로 지급
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from veedapi.config import Settings
from veedapi.core.exceptions import (
    AlreadyWatchedTodayError,
    AuthorizationError,
    IncompleteWatchError,
    NoActivePlanError,
    NotFoundError,
    QuotaExceededError,
)
from veedapi.database.session import unit_of_work
from veedapi.models.account import Account as AccountModel
from veedapi.models.catalog import Video as VideoModel
from veedapi.models.ledger import LedgerKind
from veedapi.repositories.account_repository import AccountRepository
from veedapi.repositories.catalog_repository import VideoRepository
from veedapi.repositories.watch_repository import WatchRecordRepository
from veedapi.schemas.account import DailyWatchState, DailyWatchStatus
from veedapi.schemas.watch import WatchHistoryResponse, WatchResult
from veedapi.services.ledger_service import LedgerService
from veedapi.services.plan_service import plan_is_active
from veedapi.services.referral_service import (
    ReferralService,
    quota_event_key,
    reward_event_key,
)
from veedapi.utils.money import to_money
from veedapi.utils.timezone_utils import DayPolicy

logger = logging.getLogger(__name__)


def daily_state(watched: int, quota: int) -> DailyWatchState:
    if watched <= 0:
        return DailyWatchState.NOT_STARTED
    if watched < quota:
        return DailyWatchState.IN_PROGRESS
    return DailyWatchState.COMPLETE


class VideoRewardService:
    """영상 시청 보상 관련 비즈니스 로직을 담당하는 서비스"""

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
        self.video_repo = VideoRepository(db)
        self.watch_repo = WatchRecordRepository(db)
        self.ledger_service = LedgerService(db, self.day_policy)
        self.referral_service = referral_service or ReferralService(
            db, settings, self.day_policy
        )

    def _rollover(self, account: AccountModel) -> None:
        """마지막 시청일이 오늘 이전이면 카운터 초기화"""
        if account.videos_watched_today and self.day_policy.is_before_today(
            account.last_video_watch_date
        ):
            logger.info(
                f"Daily rollover for account {account.id}: {account.videos_watched_today} -> 0"
            )
            account.videos_watched_today = 0

    def _reward_for(self, account: AccountModel, video: VideoModel) -> Decimal:
        """REWARD_MODEL 에 따른 영상 1개 보상 금액"""
        if self.settings.REWARD_MODEL == "video_fixed" and video.reward_amount:
            return to_money(video.reward_amount)
        return to_money(Decimal(account.plan_daily_reward) / account.plan_videos_per_day)

    def watch(self, account_id: int, video_id: int, watched_seconds: float) -> WatchResult:
        """영상 시청 완료 보상 지급

        Args:
            account_id: 계정 ID
            video_id: 영상 ID
            watched_seconds: 클라이언트가 보고한 시청 시간 (초)

        Returns:
            WatchResult: 지급 보상, 잔액, 오늘 시청 수

        Raises:
            NoActivePlanError: 플랜 없음 또는 만료
            QuotaExceededError: 오늘 할당량 소진
            IncompleteWatchError: 시청 시간 부족
            AlreadyWatchedTodayError: 오늘 이미 보상받은 영상
        """
        with unit_of_work(self.db, "watch_video"):
            account = self.account_repo.get_for_update(account_id)
            if account is None:
                raise NotFoundError(f"Account not found: {account_id}")
            if not account.is_active:
                raise AuthorizationError("Account is blocked")

            self._rollover(account)

            now = self.day_policy.now()
            today = self.day_policy.local_day(now)

            if not plan_is_active(account, now, self.settings.PLAN_DURATION_MODEL):
                raise NoActivePlanError()

            quota = account.plan_videos_per_day
            if account.videos_watched_today >= quota:
                raise QuotaExceededError(
                    details={"videos_watched_today": account.videos_watched_today, "videos_per_day": quota}
                )

            video = self.video_repo.get_model(video_id)
            if video is None or not video.is_active:
                raise NotFoundError(f"Video not found: {video_id}")

            required = video.duration_seconds - self.settings.WATCH_TOLERANCE_SECONDS
            if watched_seconds < required:
                raise IncompleteWatchError(
                    details={"watched_seconds": watched_seconds, "required_seconds": required}
                )

            if self.watch_repo.exists_for_day(account.id, video.id, today):
                raise AlreadyWatchedTodayError(details={"video_id": video.id, "day": today.isoformat()})

            reward = self._reward_for(account, video)
            entry = self.ledger_service.credit(
                account,
                reward,
                LedgerKind.VIDEO_REWARD,
                f'Recompensa por assistir ao vídeo "{video.title}"',
                related_type="video",
                related_id=video.id,
            )
            account.videos_watched_today += 1
            account.last_video_watch_date = now

            try:
                record = self.watch_repo.create(
                    account_id=account.id,
                    video_id=video.id,
                    watched_at=now,
                    watch_day=today,
                    reward_earned=reward,
                    ledger_entry_id=entry.id,
                    plan_purchase_entry_id=account.plan_purchase_entry_id,
                    daily_quota=quota,
                )
            except IntegrityError:
                # 동시 요청이 먼저 기록한 경우
                raise AlreadyWatchedTodayError(details={"video_id": video.id, "day": today.isoformat()})

            result = WatchResult(
                account_id=account.id,
                video_id=video.id,
                reward=reward,
                balance=to_money(account.balance),
                videos_watched_today=account.videos_watched_today,
                videos_per_day=quota,
                state=daily_state(account.videos_watched_today, quota),
                watch_record_id=record.id,
                ledger_entry_id=entry.id,
            )
            referred_by_id = account.referred_by_id
            username = account.username
            cycle_id = account.plan_purchase_entry_id

        logger.info(
            f"Account {account_id} watched video {video_id}: +{reward} ({result.videos_watched_today}/{quota})"
        )

        if referred_by_id is not None:
            bonus = self._cascade(account_id, username, result, today, cycle_id)
            if bonus is not None:
                result.referral_entry_id = bonus.id

        return result

    def _cascade(
        self, account_id: int, username: str, result: WatchResult, today, cycle_id: Optional[int]
    ):
        if self.settings.REFERRAL_CASCADE_MODE == "per_video":
            return self.referral_service.cascade(
                account_id,
                result.reward,
                self.settings.VIDEO_REFERRAL_RATE,
                LedgerKind.REFERRAL_DAILY_BONUS,
                reward_event_key(result.ledger_entry_id),
                f"Bônus de 5% da renda diária do indicado {username} por assistir vídeo",
            )

        if result.state != DailyWatchState.COMPLETE:
            return None

        _, total = self.watch_repo.cycle_totals(account_id, today, cycle_id)
        return self.referral_service.cascade(
            account_id,
            total,
            self.settings.VIDEO_REFERRAL_RATE,
            LedgerKind.REFERRAL_DAILY_BONUS,
            quota_event_key(account_id, today, cycle_id),
            self.referral_service.quota_description(username),
        )

    def get_daily_status(self, account_id: int) -> DailyWatchStatus:
        """오늘 시청 현황 조회 (조회 시에도 lazy rollover 적용)"""
        with unit_of_work(self.db, "daily_status"):
            account = self.account_repo.get_for_update(account_id)
            if account is None:
                raise NotFoundError(f"Account not found: {account_id}")

            self._rollover(account)

            now = self.day_policy.now()
            today = self.day_policy.local_day(now)
            active = plan_is_active(account, now, self.settings.PLAN_DURATION_MODEL)
            quota = account.plan_videos_per_day if active else 0
            watched = account.videos_watched_today

            status = DailyWatchStatus(
                account_id=account.id,
                day=today,
                state=daily_state(watched, quota) if active else DailyWatchState.NOT_STARTED,
                videos_watched_today=watched,
                videos_per_day=quota,
                remaining=max(0, quota - watched),
                has_active_plan=active,
                plan_expires_at=account.plan_expires_at,
                watched_video_ids=self.watch_repo.watched_video_ids(account.id, today),
            )

        return status

    def get_watch_history(
        self, account_id: int, limit: int = 50, offset: int = 0
    ) -> WatchHistoryResponse:
        """시청 기록 조회 (최신순)"""
        if limit > 100:
            limit = 100

        if self.account_repo.get_model(account_id) is None:
            raise NotFoundError(f"Account not found: {account_id}")

        records = self.watch_repo.get_history(account_id, limit=limit, offset=offset)
        total_count = self.watch_repo.count({"account_id": account_id})
        return WatchHistoryResponse(
            records=records,
            total_count=total_count,
            has_next=offset + len(records) < total_count,
        )
