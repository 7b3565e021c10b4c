import pytest
from decimal import Decimal
from unittest.mock import Mock, patch

from veedapi.services.aws_service import AwsService
from veedapi.services.notification_service import NotificationService


@pytest.fixture
def ses_client():
    client = Mock()
    client.send_email.return_value = {"MessageId": "msg-1"}
    return client


class TestNotificationService:
    """SES 메일 알림 테스트"""

    @patch("veedapi.services.aws_service.boto3")
    def test_deposit_approved_mail_is_sent_via_ses(self, mock_boto3, ses_client, make_settings):
        # Given
        mock_boto3.client.return_value = ses_client
        settings = make_settings(
            NOTIFICATIONS_ENABLED=True,
            SES_FROM_EMAIL="no-reply@veed.co.mz",
            AWS_ACCESS_KEY_ID=None,
            AWS_SECRET_ACCESS_KEY=None,
        )
        service = NotificationService(settings)

        # When
        sent = service.send_deposit_approved("user@veed.co.mz", Decimal("250.00"))

        # Then
        assert sent is True
        mock_boto3.client.assert_called_once_with("ses", region_name=settings.AWS_REGION)
        kwargs = ses_client.send_email.call_args.kwargs
        assert kwargs["Source"] == "no-reply@veed.co.mz"
        assert kwargs["Destination"] == {"ToAddresses": ["user@veed.co.mz"]}
        assert "250.00 MT" in kwargs["Message"]["Body"]["Html"]["Data"]

    @patch("veedapi.services.aws_service.boto3")
    def test_explicit_credentials_are_passed(self, mock_boto3, ses_client, make_settings):
        mock_boto3.client.return_value = ses_client
        settings = make_settings(
            NOTIFICATIONS_ENABLED=True, AWS_ACCESS_KEY_ID="key", AWS_SECRET_ACCESS_KEY="secret"
        )

        NotificationService(settings).send_welcome("user@veed.co.mz", "user")

        mock_boto3.client.assert_called_once_with(
            "ses",
            region_name=settings.AWS_REGION,
            aws_access_key_id="key",
            aws_secret_access_key="secret",
        )

    def test_disabled_notifications_skip_ses(self, make_settings):
        aws_service = Mock(spec=AwsService)
        service = NotificationService(make_settings(NOTIFICATIONS_ENABLED=False), aws_service=aws_service)

        assert service.send_welcome("user@veed.co.mz", "user") is False
        aws_service.send_email.assert_not_called()

    def test_ses_failure_is_swallowed(self, make_settings, caplog):
        aws_service = Mock(spec=AwsService)
        aws_service.send_email.side_effect = RuntimeError("throttled")
        service = NotificationService(make_settings(NOTIFICATIONS_ENABLED=True), aws_service=aws_service)

        assert service.send_verification("user@veed.co.mz", "https://veed.co.mz/verify") is False
        assert "throttled" in caplog.text
