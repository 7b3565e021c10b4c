from decimal import Decimal
from functools import lru_cache
from typing import List, Literal, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="veedapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "VEED"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = ""
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = ""

    # 직접 지정하면 POSTGRES_* 값보다 우선 (테스트에서는 sqlite 사용)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # AWS (SES 메일 발송)
    AWS_REGION: str = "af-south-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    SES_FROM_EMAIL: str = "no-reply@veed.co.mz"
    NOTIFICATIONS_ENABLED: bool = True
    PUBLIC_BASE_URL: str = "https://veed.co.mz"

    # Timezone - 일일 리셋은 모두 이 타임존의 날짜 기준
    TIMEZONE: str = "Africa/Maputo"
    CURRENCY: str = "MT"

    # Reward Rules
    REWARD_MODEL: Literal["plan_derived", "video_fixed"] = "plan_derived"
    PLAN_DURATION_MODEL: Literal["duration", "perpetual"] = "duration"
    REFERRAL_CASCADE_MODE: Literal["per_video", "on_quota_complete"] = "per_video"
    WITHDRAWAL_DEBIT_POLICY: Literal["on_request", "on_approval"] = "on_request"
    PLAN_REFERRAL_RATE: Decimal = Decimal("0.10")  # 플랜 구매 시 추천인 보너스 비율
    VIDEO_REFERRAL_RATE: Decimal = Decimal("0.05")  # 영상 보상 시 추천인 보너스 비율
    WATCH_TOLERANCE_SECONDS: int = 1  # 플레이어 지터 허용치 (초)

    # Payments
    PAYMENT_METHODS: List[str] = ["M-Pesa", "e-Mola"]

    # Referral
    REFERRAL_CODE_LENGTH: int = 6


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


settings = get_settings()
