import logging
from decimal import Decimal
from typing import Optional

from veedapi.config import Settings
from veedapi.services.aws_service import AwsService

logger = logging.getLogger(__name__)


class NotificationService:
    """
    사용자 이메일 알림 (AWS SES)

    모든 발송은 fire-and-forget 입니다. 발송 실패는 로그만 남기고
    호출한 비즈니스 연산(이미 commit 됨)에 영향을 주지 않습니다.
    """

    def __init__(self, settings: Settings, aws_service: Optional[AwsService] = None):
        self.settings = settings
        self.aws_service = aws_service or AwsService(settings)

    def _send(self, to_email: str, subject: str, body_html: str) -> bool:
        if not self.settings.NOTIFICATIONS_ENABLED:
            logger.debug(f"Notifications disabled, skipping '{subject}' to {to_email}")
            return False

        try:
            self.aws_service.send_email(to_email=to_email, subject=subject, body_html=body_html)
            return True
        except Exception as e:
            logger.warning(f"Failed to send '{subject}' to {to_email}: {str(e)}")
            return False

    def send_verification(self, to_email: str, verification_url: str) -> bool:
        return self._send(
            to_email,
            f"Verifique seu email para o {self.settings.APP_NAME}",
            f"""
            <h1>Bem-vindo ao {self.settings.APP_NAME}!</h1>
            <p>Por favor, clique no link abaixo para verificar seu endereço de email:</p>
            <a href="{verification_url}">Verificar Email</a>
            <p>Se você não se registrou no {self.settings.APP_NAME}, por favor ignore este email.</p>
            """,
        )

    def send_welcome(self, to_email: str, username: str) -> bool:
        return self._send(
            to_email,
            f"Bem-vindo ao {self.settings.APP_NAME}!",
            f"""
            <h1>Olá, {username}!</h1>
            <p>Seja muito bem-vindo à plataforma {self.settings.APP_NAME}.</p>
            <p>Aproveite seus vídeos e comece a ganhar!</p>
            """,
        )

    def send_deposit_approved(self, to_email: str, amount: Decimal) -> bool:
        return self._send(
            to_email,
            "Depósito aprovado",
            f"""
            <h1>Depósito aprovado</h1>
            <p>O seu depósito de {amount} {self.settings.CURRENCY} foi aprovado e já está disponível no seu saldo.</p>
            """,
        )
