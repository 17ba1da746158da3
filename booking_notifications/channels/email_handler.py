from asgiref.sync import sync_to_async
from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection, make_msgid
import logging
import requests

from booking_notifications.models import ChannelType, ProviderType
from .base import (
    NotificationPayload, SendResult, is_mock_secret, mock_external_id, preview,
    provider_timeout, rate_setting,
)

logger = logging.getLogger('booking_notifications.channels.email')

SENDGRID_SEND_URL = 'https://api.sendgrid.com/v3/mail/send'
RESEND_SEND_URL = 'https://api.resend.com/emails'


def _from_email(credentials: dict) -> str:
    return credentials.get('from_email') or getattr(settings, 'NOTIFICATION_DEFAULT_FROM_EMAIL', 'noreply@spa.local')


def _dev_mode_result(provider: str, from_email: str, payload: NotificationPayload) -> SendResult:
    logger.info(
        f"📧 [EMAIL - DEV MODE] provider={provider} from={from_email} to={payload.to} "
        f"subject={payload.subject!r} message={preview(payload.message)!r}"
    )
    return SendResult(
        success=True,
        channel=ChannelType.EMAIL.value,
        provider=provider,
        external_id=mock_external_id('mock'),
    )


def _failure(provider: str, error: str) -> SendResult:
    return SendResult(success=False, channel=ChannelType.EMAIL.value, provider=provider, error=error)


def _json_or_empty(response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class SendGridEmailAdapter:
    """Email through the SendGrid v3 mail/send endpoint (legacy default provider)"""
    channel = ChannelType.EMAIL.value
    provider = ProviderType.SENDGRID.value

    def __init__(self, credentials: dict):
        self.api_key = credentials.get('api_key')
        self.from_email = _from_email(credentials)
        self.timeout = provider_timeout()

    @property
    def mock_mode(self) -> bool:
        return is_mock_secret(self.api_key)

    def _build_body(self, payload: NotificationPayload) -> dict:
        content = [{'type': 'text/plain', 'value': payload.message}]
        if payload.html:
            content.append({'type': 'text/html', 'value': payload.html})
        return {
            'personalizations': [{'to': [{'email': payload.to}]}],
            'from': {'email': self.from_email},
            'subject': payload.subject or '',
            'content': content,
        }

    def _post(self, payload: NotificationPayload):
        return requests.post(
            SENDGRID_SEND_URL,
            json=self._build_body(payload),
            headers={
                'Authorization': f'Bearer {self.api_key}',
                'Content-Type': 'application/json',
            },
            timeout=self.timeout,
        )

    async def send(self, payload: NotificationPayload) -> SendResult:
        if self.mock_mode:
            return _dev_mode_result(self.provider, self.from_email, payload)

        try:
            response = await sync_to_async(self._post, thread_sensitive=False)(payload)
        except requests.RequestException as e:
            logger.error(f"SendGrid request error sending to {payload.to}: {str(e)}")
            return _failure(self.provider, str(e))

        if response.status_code in (200, 202):
            message_id = response.headers.get('X-Message-Id')
            logger.info(f"✅ Email sent via SendGrid to {payload.to}: {message_id}")
            return SendResult(
                success=True,
                channel=self.channel,
                provider=self.provider,
                external_id=message_id,
                estimated_cost=rate_setting('EMAIL_COST_PER_MESSAGE'),
            )

        errors = _json_or_empty(response).get('errors') or [{}]
        error = errors[0].get('message') or f'SendGrid returned HTTP {response.status_code}'
        logger.warning(f"SendGrid rejected email to {payload.to}: {error}")
        return _failure(self.provider, error)


class ResendEmailAdapter:
    channel = ChannelType.EMAIL.value
    provider = ProviderType.RESEND.value

    def __init__(self, credentials: dict):
        self.api_key = credentials.get('api_key')
        self.from_email = _from_email(credentials)
        self.timeout = provider_timeout()

    @property
    def mock_mode(self) -> bool:
        return is_mock_secret(self.api_key)

    def _post(self, payload: NotificationPayload):
        body = {
            'from': self.from_email,
            'to': [payload.to],
            'subject': payload.subject or '',
            'text': payload.message,
        }
        if payload.html:
            body['html'] = payload.html
        return requests.post(
            RESEND_SEND_URL,
            json=body,
            headers={'Authorization': f'Bearer {self.api_key}'},
            timeout=self.timeout,
        )

    async def send(self, payload: NotificationPayload) -> SendResult:
        if self.mock_mode:
            return _dev_mode_result(self.provider, self.from_email, payload)

        try:
            response = await sync_to_async(self._post, thread_sensitive=False)(payload)
        except requests.RequestException as e:
            logger.error(f"Resend request error sending to {payload.to}: {str(e)}")
            return _failure(self.provider, str(e))

        data = _json_or_empty(response)
        if response.ok and data.get('id'):
            logger.info(f"✅ Email sent via Resend to {payload.to}: {data['id']}")
            return SendResult(
                success=True,
                channel=self.channel,
                provider=self.provider,
                external_id=data['id'],
                estimated_cost=rate_setting('EMAIL_COST_PER_MESSAGE'),
            )

        error = data.get('message') or f'Resend returned HTTP {response.status_code}'
        logger.warning(f"Resend rejected email to {payload.to}: {error}")
        return _failure(self.provider, error)


class SmtpEmailAdapter:
    """Email through a tenant-supplied SMTP server using Django's mail backend"""
    channel = ChannelType.EMAIL.value
    provider = ProviderType.SMTP.value

    def __init__(self, credentials: dict):
        self.credentials = credentials
        self.host = credentials.get('smtp_host')
        # Tenant's from_email, then the SMTP login, then the service default
        self.from_email = credentials.get('from_email') or credentials.get('username') or _from_email(credentials)
        self.timeout = provider_timeout()

    @property
    def mock_mode(self) -> bool:
        return is_mock_secret(self.host)

    def _send_sync(self, payload: NotificationPayload) -> str:
        creds = self.credentials
        connection = get_connection(
            backend='django.core.mail.backends.smtp.EmailBackend',
            host=self.host,
            port=int(creds.get('smtp_port') or 587),
            username=creds.get('username') or '',
            password=creds.get('password') or '',
            use_ssl=bool(creds.get('use_ssl', False)),
            use_tls=bool(creds.get('use_tls', not creds.get('use_ssl', False))),
            timeout=self.timeout,
        )
        message_id = make_msgid(domain=self.from_email.split('@')[-1])
        email = EmailMultiAlternatives(
            subject=payload.subject or '',
            body=payload.message,
            from_email=self.from_email,
            to=[payload.to],
            connection=connection,
            headers={'Message-ID': message_id},
        )
        if payload.html:
            email.attach_alternative(payload.html, "text/html")
        sent = email.send(fail_silently=False)
        return message_id if sent else ''

    async def send(self, payload: NotificationPayload) -> SendResult:
        if self.mock_mode:
            return _dev_mode_result(self.provider, self.from_email, payload)

        try:
            message_id = await sync_to_async(self._send_sync, thread_sensitive=False)(payload)
        except Exception as e:
            logger.error(f"SMTP send error to {payload.to} via {self.host}: {str(e)}")
            return _failure(self.provider, str(e))

        if not message_id:
            logger.warning(f"⚠️ SMTP send returned 0 for {payload.to}")
            return _failure(self.provider, 'Send failed')

        logger.info(f"✅ Email sent via SMTP to {payload.to}")
        return SendResult(
            success=True,
            channel=self.channel,
            provider=self.provider,
            external_id=message_id,
            estimated_cost=rate_setting('EMAIL_COST_PER_MESSAGE'),
        )
