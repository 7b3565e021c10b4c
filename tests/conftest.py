import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import Mock

from sqlalchemy.orm import sessionmaker

from veedapi.config import Settings
from veedapi.database.connection import build_engine
from veedapi.models.base import Base
from veedapi.models import account, catalog, ledger, payment, watch  # noqa: F401
from veedapi.models.account import Account as AccountModel
from veedapi.schemas.account import AccountCreate
from veedapi.schemas.catalog import PlanCreate, VideoCreate
from veedapi.schemas.ledger import AdminAdjustmentRequest
from veedapi.services.account_service import AccountService
from veedapi.services.ledger_service import LedgerService
from veedapi.services.notification_service import NotificationService
from veedapi.services.plan_service import PlanService
from veedapi.services.video_service import VideoService
from veedapi.utils.timezone_utils import DayPolicy, FixedClock


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def clock():
    """2025-03-10 08:00 UTC = 10:00 Africa/Maputo"""
    return FixedClock(datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def day_policy(clock):
    return DayPolicy("Africa/Maputo", clock=clock)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        values = {"DATABASE_URL": "sqlite://", "NOTIFICATIONS_ENABLED": False}
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def notifier():
    return Mock(spec=NotificationService)


class Factory:
    """테스트 데이터 생성 헬퍼 - 잔액은 관리자 조정으로 적립하여 원장 정합성 유지"""

    def __init__(self, db, settings, day_policy, notifier):
        self.db = db
        self.account_service = AccountService(db, settings, notifier=notifier)
        self.ledger_service = LedgerService(db, day_policy)
        self.plan_service = PlanService(db, settings, day_policy)
        self.video_service = VideoService(db, settings, day_policy)

    def account(self, username, balance="0", referral_code=None):
        created = self.account_service.register(
            AccountCreate(
                username=username,
                email=f"{username}@veed.co.mz",
                referral_code=referral_code,
            )
        )
        if Decimal(balance) > 0:
            self.ledger_service.admin_adjust(
                AdminAdjustmentRequest(
                    account_id=created.id,
                    amount=Decimal(balance),
                    description="Saldo inicial",
                )
            )
        return created

    def plan(self, name="Bronze", cost="100", daily_reward="30", videos_per_day=3, duration_days=30):
        return self.plan_service.create_plan(
            PlanCreate(
                name=name,
                cost=Decimal(cost),
                daily_reward=Decimal(daily_reward),
                videos_per_day=videos_per_day,
                duration_days=duration_days,
            )
        )

    def video(self, title="Video", duration_seconds=60, reward_amount=None):
        return self.video_service.create_video(
            VideoCreate(
                title=title,
                video_url=f"https://cdn.veed.co.mz/{title}.mp4",
                duration_seconds=duration_seconds,
                reward_amount=reward_amount,
            )
        )

    def balance(self, account_id) -> Decimal:
        return Decimal(self.db.get(AccountModel, account_id).balance)

    def model(self, account_id) -> AccountModel:
        return self.db.get(AccountModel, account_id)


@pytest.fixture
def factory(db, settings, day_policy, notifier):
    return Factory(db, settings, day_policy, notifier)
