import logging
import secrets
import string
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from veedapi.config import Settings
from veedapi.core.exceptions import ConflictError, NotFoundError, ValidationError
from veedapi.database.session import unit_of_work
from veedapi.models.account import AccountRole
from veedapi.repositories.account_repository import AccountRepository
from veedapi.schemas.account import Account, AccountCreate
from veedapi.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits


class AccountService:
    """계정 관련 비즈니스 로직을 담당하는 서비스 (인증 자체는 외부 Identity 서비스)"""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.settings = settings
        self.account_repo = AccountRepository(db)
        self.notifier = notifier or NotificationService(settings)

    def _generate_referral_code(self, max_retries: int = 10) -> str:
        """대문자/숫자로 된 고유 추천 코드 생성"""
        for _ in range(max_retries):
            code = "".join(
                secrets.choice(REFERRAL_CODE_ALPHABET)
                for _ in range(self.settings.REFERRAL_CODE_LENGTH)
            )
            if not self.account_repo.referral_code_exists(code):
                return code
            logger.warning(f"Referral code collision on {code}, retrying...")

        raise ConflictError("Failed to generate a unique referral code")

    def register(
        self,
        request: AccountCreate,
        verification_url: Optional[str] = None,
        role: AccountRole = AccountRole.USER,
    ) -> Account:
        """계정 생성

        추천 코드가 주어지면 해당 계정을 추천인으로 기록합니다 (이후 변경 불가).
        가입 후 환영/인증 메일을 발송합니다 (실패해도 가입은 유지).

        Args:
            request: 계정 생성 요청
            verification_url: Identity 서비스가 발급한 이메일 인증 링크
            role: 계정 역할

        Returns:
            Account: 생성된 계정
        """
        email = request.email.lower()

        with unit_of_work(self.db, "register_account"):
            if self.account_repo.email_exists(email):
                raise ConflictError("Este email já está registrado.", details={"field": "email"})
            if self.account_repo.username_exists(request.username):
                raise ConflictError(
                    "Este nome de usuário já está em uso.", details={"field": "username"}
                )

            referred_by_id = None
            if request.referral_code:
                referrer = self.account_repo.get_model_by_referral_code(request.referral_code)
                if referrer is None:
                    raise ValidationError(
                        "Código de referência inválido.",
                        details={"referral_code": request.referral_code},
                    )
                referred_by_id = referrer.id

            account = self.account_repo.create(
                username=request.username,
                email=email,
                role=role.value,
                balance=Decimal("0.00"),
                videos_watched_today=0,
                referral_code=self._generate_referral_code(),
                referred_by_id=referred_by_id,
            )

        logger.info(
            f"Registered account {account.id} ({account.username}), referred_by={referred_by_id}"
        )

        if verification_url:
            self.notifier.send_verification(account.email, verification_url)
        self.notifier.send_welcome(account.email, account.username)

        return Account.model_validate(account)

    def mark_verified(self, account_id: int) -> Account:
        """이메일 인증 완료 처리 (토큰 검증은 Identity 서비스)"""
        with unit_of_work(self.db, "verify_email"):
            account = self._get_model(account_id)
            account.is_verified = True

        logger.info(f"Account {account_id} verified email")
        return Account.model_validate(account)

    def update_username(self, account_id: int, username: str) -> Account:
        username = username.strip()
        if len(username) < 3:
            raise ValidationError("Username must be at least 3 characters")

        with unit_of_work(self.db, "update_username"):
            account = self._get_model(account_id)
            if username != account.username:
                if self.account_repo.username_exists(username):
                    raise ConflictError("Este nome de usuário já está em uso.")
                account.username = username

        return Account.model_validate(account)

    def block(self, account_id: int) -> Account:
        return self._set_active(account_id, False)

    def unblock(self, account_id: int) -> Account:
        return self._set_active(account_id, True)

    def _set_active(self, account_id: int, is_active: bool) -> Account:
        with unit_of_work(self.db, "set_account_active"):
            account = self._get_model(account_id)
            account.is_active = is_active

        logger.info(f"Account {account_id} {'unblocked' if is_active else 'blocked'}")
        return Account.model_validate(account)

    def _get_model(self, account_id: int):
        account = self.account_repo.get_for_update(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    def get_account(self, account_id: int) -> Account:
        account = self.account_repo.get_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    def list_accounts(self, limit: int = 50, offset: int = 0) -> List[Account]:
        if limit > 100:
            limit = 100
        return self.account_repo.list_accounts(limit=limit, offset=offset)
