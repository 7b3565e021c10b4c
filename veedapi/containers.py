from dependency_injector import containers, providers

from veedapi.config import Settings
from veedapi.database.session import get_db
from veedapi.services.account_service import AccountService
from veedapi.services.aws_service import AwsService
from veedapi.services.ledger_service import LedgerService
from veedapi.services.notification_service import NotificationService
from veedapi.services.payment_service import PaymentService
from veedapi.services.plan_service import PlanService
from veedapi.services.referral_service import ReferralService
from veedapi.services.video_reward_service import VideoRewardService
from veedapi.services.video_service import VideoService
from veedapi.utils.timezone_utils import DayPolicy, SystemClock


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)
    clock = providers.Singleton(SystemClock)
    day_policy = providers.Singleton(
        DayPolicy, timezone_name=config.provided.TIMEZONE, clock=clock
    )


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    aws_service = providers.Factory(AwsService, settings=config.config)
    notification_service = providers.Factory(
        NotificationService, settings=config.config, aws_service=aws_service
    )
    ledger_service = providers.Factory(
        LedgerService, db=repositories.get_db, day_policy=config.day_policy
    )
    referral_service = providers.Factory(
        ReferralService,
        db=repositories.get_db,
        settings=config.config,
        day_policy=config.day_policy,
    )
    plan_service = providers.Factory(
        PlanService,
        db=repositories.get_db,
        settings=config.config,
        day_policy=config.day_policy,
        referral_service=referral_service,
    )
    video_reward_service = providers.Factory(
        VideoRewardService,
        db=repositories.get_db,
        settings=config.config,
        day_policy=config.day_policy,
        referral_service=referral_service,
    )
    video_service = providers.Factory(
        VideoService,
        db=repositories.get_db,
        settings=config.config,
        day_policy=config.day_policy,
    )
    payment_service = providers.Factory(
        PaymentService,
        db=repositories.get_db,
        settings=config.config,
        day_policy=config.day_policy,
        notifier=notification_service,
    )
    account_service = providers.Factory(
        AccountService,
        db=repositories.get_db,
        settings=config.config,
        notifier=notification_service,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
