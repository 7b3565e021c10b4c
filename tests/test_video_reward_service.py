import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from veedapi.core.exceptions import (
    AlreadyWatchedTodayError,
    IncompleteWatchError,
    NoActivePlanError,
    NotFoundError,
    QuotaExceededError,
)
from veedapi.models.ledger import LedgerKind
from veedapi.schemas.account import DailyWatchState
from veedapi.schemas.catalog import VideoUpdate
from veedapi.schemas.ledger import AdminAdjustmentRequest
from veedapi.services.ledger_service import LedgerService
from veedapi.services.plan_service import PlanService
from veedapi.services.video_reward_service import VideoRewardService


@pytest.fixture
def reward_service(db, settings, day_policy):
    return VideoRewardService(db, settings, day_policy)


@pytest.fixture
def ledger_service(db, day_policy):
    return LedgerService(db, day_policy)


@pytest.fixture
def subscribed(db, factory, settings, day_policy):
    """R 이 추천한 U 가 Plan{cost 100, daily 30, 3 videos} 를 150 잔액으로 구매한 상태"""
    referrer = factory.account("referrer")
    user = factory.account("user", balance="150", referral_code=referrer.referral_code)
    plan = factory.plan(cost="100", daily_reward="30", videos_per_day=3, duration_days=30)
    PlanService(db, settings, day_policy).purchase(user.id, plan.id)
    videos = [factory.video(title=f"v{i}", duration_seconds=60) for i in range(1, 5)]
    return referrer, user, plan, videos


class TestWatch:
    """영상 시청 보상 테스트"""

    def test_first_watch_pays_reward_and_referral(self, factory, reward_service, ledger_service, subscribed):
        # Given
        referrer, user, plan, videos = subscribed

        # When
        result = reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        # Then
        assert result.reward == Decimal("10.00")
        assert result.balance == Decimal("60.00")
        assert result.videos_watched_today == 1
        assert result.state == DailyWatchState.IN_PROGRESS
        assert result.referral_entry_id is not None
        # 구매 보너스 10 + 시청 보너스 0.5
        assert factory.balance(referrer.id) == Decimal("10.50")

        bonus = ledger_service.get_history(referrer.id).entries[0]
        assert bonus.kind == LedgerKind.REFERRAL_DAILY_BONUS
        assert bonus.event_key == f"referral:{result.ledger_entry_id}"
        assert ledger_service.verify_global_integrity().status == "OK"

    def test_tolerance_boundary(self, reward_service, subscribed):
        _, user, _, videos = subscribed

        result = reward_service.watch(user.id, videos[0].id, watched_seconds=59)
        assert result.reward == Decimal("10.00")

        with pytest.raises(IncompleteWatchError):
            reward_service.watch(user.id, videos[1].id, watched_seconds=58)

    def test_same_video_twice_on_same_day(self, factory, reward_service, subscribed):
        _, user, _, videos = subscribed
        reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        with pytest.raises(AlreadyWatchedTodayError):
            reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        assert factory.balance(user.id) == Decimal("60.00")
        assert factory.model(user.id).videos_watched_today == 1

    def test_quota_is_enforced(self, factory, reward_service, subscribed):
        _, user, _, videos = subscribed
        for video in videos[:3]:
            result = reward_service.watch(user.id, video.id, watched_seconds=60)

        assert result.state == DailyWatchState.COMPLETE
        assert factory.balance(user.id) == Decimal("80.00")

        with pytest.raises(QuotaExceededError):
            reward_service.watch(user.id, videos[3].id, watched_seconds=60)

        assert factory.model(user.id).videos_watched_today == 3

    def test_quota_is_checked_before_watch_duration(self, reward_service, subscribed):
        _, user, _, videos = subscribed
        for video in videos[:3]:
            reward_service.watch(user.id, video.id, watched_seconds=60)

        with pytest.raises(QuotaExceededError):
            reward_service.watch(user.id, videos[3].id, watched_seconds=0)

    def test_rollover_on_next_local_day(self, reward_service, subscribed, clock):
        # Given: 오늘 할당량 소진
        _, user, _, videos = subscribed
        for video in videos[:3]:
            reward_service.watch(user.id, video.id, watched_seconds=60)

        # When: 다음날 (Maputo 기준)
        clock.advance(days=1)
        status = reward_service.get_daily_status(user.id)

        # Then
        assert status.state == DailyWatchState.NOT_STARTED
        assert status.videos_watched_today == 0
        assert status.remaining == 3
        assert status.watched_video_ids == []

        result = reward_service.watch(user.id, videos[0].id, watched_seconds=60)
        assert result.videos_watched_today == 1

    def test_day_boundary_follows_maputo_midnight(self, reward_service, subscribed, clock):
        """UTC 로는 같은 날이지만 Maputo 자정을 넘으면 새 날"""
        _, user, _, videos = subscribed
        clock.set(datetime(2025, 3, 10, 21, 30, tzinfo=timezone.utc))  # 23:30 local
        reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        clock.advance(hours=1)  # 00:30 local, 3월 11일
        result = reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        assert result.videos_watched_today == 1

    def test_no_plan(self, factory, reward_service):
        user = factory.account("nobody", balance="10")
        video = factory.video()

        with pytest.raises(NoActivePlanError):
            reward_service.watch(user.id, video.id, watched_seconds=60)

    def test_expired_plan(self, reward_service, subscribed, clock):
        _, user, _, videos = subscribed
        clock.advance(days=30, seconds=1)

        with pytest.raises(NoActivePlanError):
            reward_service.watch(user.id, videos[0].id, watched_seconds=60)

    def test_unknown_and_inactive_video(self, factory, reward_service, subscribed):
        _, user, _, videos = subscribed
        factory.video_service.update_video(videos[0].id, VideoUpdate(is_active=False))

        with pytest.raises(NotFoundError):
            reward_service.watch(user.id, 404, watched_seconds=60)
        with pytest.raises(NotFoundError):
            reward_service.watch(user.id, videos[0].id, watched_seconds=60)

    def test_unique_constraint_maps_to_already_watched(self, factory, reward_service, subscribed):
        """동시 요청으로 사전 확인을 통과해도 유니크 제약이 중복 보상을 막음"""
        _, user, _, videos = subscribed
        reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        with patch.object(reward_service.watch_repo, "exists_for_day", return_value=False):
            with pytest.raises(AlreadyWatchedTodayError):
                reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        assert factory.balance(user.id) == Decimal("60.00")
        assert factory.model(user.id).videos_watched_today == 1

    def test_history(self, reward_service, subscribed):
        _, user, _, videos = subscribed
        reward_service.watch(user.id, videos[0].id, watched_seconds=60)
        reward_service.watch(user.id, videos[1].id, watched_seconds=60)

        history = reward_service.get_watch_history(user.id, limit=1)

        assert history.total_count == 2
        assert history.has_next is True
        assert history.records[0].video_id == videos[1].id
        assert history.records[0].reward_earned == Decimal("10.00")


class TestRewardModels:
    """설정 가능한 보상/추천 모델 테스트"""

    def test_video_fixed_reward(self, db, factory, make_settings, day_policy, subscribed):
        _, user, _, videos = subscribed
        fixed = factory.video(title="promo", duration_seconds=30, reward_amount=Decimal("12"))
        service = VideoRewardService(db, make_settings(REWARD_MODEL="video_fixed"), day_policy)

        promo = service.watch(user.id, fixed.id, watched_seconds=30)
        plain = service.watch(user.id, videos[0].id, watched_seconds=60)

        assert promo.reward == Decimal("12.00")
        # reward_amount 가 없는 영상은 플랜 기반 보상
        assert plain.reward == Decimal("10.00")

    def test_on_quota_complete_cascade(self, db, factory, make_settings, day_policy, ledger_service, subscribed):
        referrer, user, _, videos = subscribed
        service = VideoRewardService(
            db, make_settings(REFERRAL_CASCADE_MODE="on_quota_complete"), day_policy
        )

        first = service.watch(user.id, videos[0].id, watched_seconds=60)
        service.watch(user.id, videos[1].id, watched_seconds=60)
        assert first.referral_entry_id is None
        assert factory.balance(referrer.id) == Decimal("10.00")

        last = service.watch(user.id, videos[2].id, watched_seconds=60)

        # 5% of 30
        assert last.referral_entry_id is not None
        assert factory.balance(referrer.id) == Decimal("11.50")
        assert ledger_service.verify_global_integrity().status == "OK"

    def test_on_quota_complete_after_same_day_plan_change(
        self, db, factory, make_settings, settings, day_policy, ledger_service, subscribed
    ):
        """같은 날 새 플랜을 구매하면 새 주기의 할당량 완료 시 보너스를 다시 지급"""
        # Given: 첫 플랜 할당량 완료 (보너스 5% of 30)
        referrer, user, _, videos = subscribed
        service = VideoRewardService(
            db, make_settings(REFERRAL_CASCADE_MODE="on_quota_complete"), day_policy
        )
        for video in videos[:3]:
            service.watch(user.id, video.id, watched_seconds=60)
        assert factory.balance(referrer.id) == Decimal("11.50")

        # When: 같은 날 다른 플랜 구매 후 새 할당량 완료
        ledger_service.admin_adjust(
            AdminAdjustmentRequest(account_id=user.id, amount=Decimal("200"), description="Recarga")
        )
        prata = factory.plan(name="Prata", cost="100", daily_reward="60", videos_per_day=3)
        PlanService(db, settings, day_policy).purchase(user.id, prata.id)
        extra = [factory.video(title=f"x{i}", duration_seconds=60) for i in range(1, 3)]
        results = [
            service.watch(user.id, video.id, watched_seconds=60)
            for video in [videos[3]] + extra
        ]

        # Then: 구매 보너스 10 + 새 주기 보상 60 의 5% (이전 주기 보상은 섞이지 않음)
        assert results[-1].state == DailyWatchState.COMPLETE
        assert results[-1].referral_entry_id is not None
        assert factory.balance(referrer.id) == Decimal("24.50")
        assert ledger_service.verify_global_integrity().status == "OK"


class TestDailyStatus:
    """오늘 시청 현황 테스트"""

    def test_status_in_progress(self, reward_service, subscribed):
        _, user, _, videos = subscribed
        reward_service.watch(user.id, videos[1].id, watched_seconds=60)

        status = reward_service.get_daily_status(user.id)

        assert status.state == DailyWatchState.IN_PROGRESS
        assert status.videos_watched_today == 1
        assert status.videos_per_day == 3
        assert status.remaining == 2
        assert status.has_active_plan is True
        assert status.watched_video_ids == [videos[1].id]

    def test_status_without_plan(self, factory, reward_service):
        user = factory.account("nobody")

        status = reward_service.get_daily_status(user.id)

        assert status.has_active_plan is False
        assert status.videos_per_day == 0
        assert status.remaining == 0

    def test_available_videos_mark_watched_today(self, factory, reward_service, subscribed, clock):
        _, user, _, videos = subscribed
        reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        available = factory.video_service.list_available(user.id)
        assert [v.watched_today for v in available] == [True, False, False, False]

        clock.advance(days=1)
        available = factory.video_service.list_available(user.id)
        assert not any(v.watched_today for v in available)

    def test_delete_watched_video_only_deactivates(self, factory, reward_service, subscribed):
        _, user, _, videos = subscribed
        reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        assert factory.video_service.delete_video(videos[0].id) is False
        assert factory.video_service.get_video(videos[0].id).is_active is False
        assert factory.video_service.delete_video(videos[3].id) is True
