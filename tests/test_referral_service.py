import pytest
from decimal import Decimal
from unittest.mock import Mock, patch

from veedapi.core.exceptions import NotFoundError, ValidationError
from veedapi.models.ledger import LedgerKind
from veedapi.schemas.ledger import AdminAdjustmentRequest
from veedapi.services.plan_service import PlanService
from veedapi.services.referral_service import ReferralService
from veedapi.services.video_reward_service import VideoRewardService


@pytest.fixture
def referral_service(db, settings, day_policy):
    return ReferralService(db, settings, day_policy)


class TestCascade:
    """추천 보너스 지급 테스트"""

    def test_no_referrer_is_noop(self, factory, referral_service):
        user = factory.account("user")

        entry = referral_service.cascade(
            user.id, Decimal("100"), Decimal("0.10"), LedgerKind.REFERRAL_PLAN_BONUS, "referral:1", "Bônus"
        )

        assert entry is None

    def test_bonus_is_rounded_to_cents(self, factory, referral_service):
        referrer = factory.account("referrer")
        user = factory.account("user", referral_code=referrer.referral_code)

        entry = referral_service.cascade(
            user.id, Decimal("3.33"), Decimal("0.05"), LedgerKind.REFERRAL_DAILY_BONUS, "referral:7", "Bônus"
        )

        # 0.1665 -> 0.17
        assert entry.amount == Decimal("0.17")
        assert entry.related_id == user.id
        assert factory.balance(referrer.id) == Decimal("0.17")

    def test_missing_referrer_is_logged_and_swallowed(self, db, factory, referral_service, caplog):
        user = factory.account("user", balance="5")
        factory.model(user.id).referred_by_id = 9999
        db.commit()

        entry = referral_service.cascade(
            user.id, Decimal("100"), Decimal("0.10"), LedgerKind.REFERRAL_PLAN_BONUS, "referral:1", "Bônus"
        )

        assert entry is None
        assert factory.balance(user.id) == Decimal("5.00")
        assert "not found" in caplog.text

    def test_credit_failure_is_swallowed_and_rolled_back(self, factory, referral_service):
        referrer = factory.account("referrer", balance="1")
        user = factory.account("user", referral_code=referrer.referral_code)
        referral_service.ledger_service = Mock()
        referral_service.ledger_service.credit.side_effect = RuntimeError("db down")

        entry = referral_service.cascade(
            user.id, Decimal("100"), Decimal("0.10"), LedgerKind.REFERRAL_PLAN_BONUS, "referral:1", "Bônus"
        )

        assert entry is None
        assert factory.balance(referrer.id) == Decimal("1.00")


class TestRetryCascade:
    """추천 보너스 재시도 테스트"""

    @pytest.fixture
    def subscribed(self, db, factory, settings, day_policy):
        referrer = factory.account("referrer")
        user = factory.account("user", balance="150", referral_code=referrer.referral_code)
        plan = factory.plan(cost="100", daily_reward="30", videos_per_day=3)
        PlanService(db, settings, day_policy).purchase(user.id, plan.id)
        videos = [factory.video(title=f"v{i}", duration_seconds=60) for i in range(1, 4)]
        return referrer, user, videos

    def test_retry_failed_per_video_bonus(self, db, factory, settings, day_policy, subscribed):
        # Given: 시청 보상은 commit 되었으나 추천 보너스 지급 실패
        referrer, user, videos = subscribed
        reward_service = VideoRewardService(db, settings, day_policy)
        with patch.object(ReferralService, "_apply_cascade", side_effect=RuntimeError("boom")):
            result = reward_service.watch(user.id, videos[0].id, watched_seconds=60)

        assert result.referral_entry_id is None
        assert factory.balance(referrer.id) == Decimal("10.00")

        # When
        referral_service = ReferralService(db, settings, day_policy)
        first = referral_service.retry_cascade(result.ledger_entry_id)
        second = referral_service.retry_cascade(result.ledger_entry_id)

        # Then
        assert first.amount == Decimal("0.50")
        assert first.event_key == f"referral:{result.ledger_entry_id}"
        assert first.id == second.id
        assert factory.balance(referrer.id) == Decimal("10.50")
        assert factory.ledger_service.verify_global_integrity().status == "OK"

    def test_retry_quota_bonus_waits_for_completion(
        self, db, factory, make_settings, day_policy, subscribed
    ):
        referrer, user, videos = subscribed
        quota_settings = make_settings(REFERRAL_CASCADE_MODE="on_quota_complete")
        reward_service = VideoRewardService(db, quota_settings, day_policy)
        referral_service = ReferralService(db, quota_settings, day_policy)

        first = reward_service.watch(user.id, videos[0].id, watched_seconds=60)
        assert referral_service.retry_cascade(first.ledger_entry_id) is None

        with patch.object(ReferralService, "_apply_cascade", side_effect=RuntimeError("boom")):
            reward_service.watch(user.id, videos[1].id, watched_seconds=60)
            last = reward_service.watch(user.id, videos[2].id, watched_seconds=60)

        assert last.referral_entry_id is None
        assert factory.balance(referrer.id) == Decimal("10.00")

        # 주기 내 어느 시청 항목으로 재시도해도 같은 보너스
        retried = referral_service.retry_cascade(first.ledger_entry_id)
        again = referral_service.retry_cascade(last.ledger_entry_id)

        assert retried.amount == Decimal("1.50")
        assert retried.id == again.id
        assert factory.balance(referrer.id) == Decimal("11.50")
        assert factory.ledger_service.verify_global_integrity().status == "OK"

    def test_retry_quota_bonus_without_watch_record(self, db, factory, make_settings, day_policy):
        user = factory.account("user")
        entry = factory.ledger_service.credit(
            factory.model(user.id), Decimal("5"), LedgerKind.VIDEO_REWARD, "Recompensa"
        )
        db.commit()
        referral_service = ReferralService(
            db, make_settings(REFERRAL_CASCADE_MODE="on_quota_complete"), day_policy
        )

        with pytest.raises(NotFoundError):
            referral_service.retry_cascade(entry.id)

    def test_unknown_entry(self, referral_service):
        with pytest.raises(NotFoundError):
            referral_service.retry_cascade(404)

    def test_non_cascading_entry(self, factory, referral_service):
        user = factory.account("user")
        entry = factory.ledger_service.admin_adjust(
            AdminAdjustmentRequest(account_id=user.id, amount=Decimal("5"), description="Crédito")
        )

        with pytest.raises(ValidationError):
            referral_service.retry_cascade(entry.id)


class TestReferralSummary:
    """추천 현황 조회 테스트"""

    def test_summary_lists_referred_accounts_and_earnings(self, db, factory, referral_service, settings, day_policy):
        # Given
        referrer = factory.account("referrer")
        first = factory.account("first", balance="100", referral_code=referrer.referral_code)
        factory.account("second", referral_code=referrer.referral_code)
        factory.account("stranger")
        plan = factory.plan()
        PlanService(db, settings, day_policy).purchase(first.id, plan.id)

        # When
        summary = referral_service.get_referral_summary(referrer.id)

        # Then
        assert summary.referral_code == referrer.referral_code
        assert summary.referral_link == f"https://veed.co.mz/register?ref={referrer.referral_code}"
        assert [a.username for a in summary.referred_accounts] == ["first", "second"]
        assert summary.total_earnings == Decimal("10.00")

    def test_summary_unknown_account(self, referral_service):
        with pytest.raises(NotFoundError):
            referral_service.get_referral_summary(404)
