from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging
import requests

from django.core.mail import get_connection
from twilio.base.exceptions import TwilioException

from booking_notifications.channels.base import is_mock_secret, provider_timeout
from booking_notifications.channels.sms_handler import twilio_client
from booking_notifications.models import ChannelType, ProviderType
from booking_notifications.orchestrator.dispatcher import Dispatcher, MOCK_SECRET_KEYS
from booking_notifications.utils.exceptions import UnsupportedChannelError

logger = logging.getLogger('booking_notifications.orchestrator')

SENDGRID_ACCOUNT_URL = 'https://api.sendgrid.com/v3/user/account'
RESEND_API_KEYS_URL = 'https://api.resend.com/api-keys'
MSG91_BALANCE_URL = 'https://api.msg91.com/api/v5/user/getBalance'


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def _json_or_empty(response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def validate_twilio_credentials(account_sid: str, auth_token: str) -> ValidationResult:
    """Fetch the Twilio account the credentials belong to"""
    try:
        client = twilio_client(account_sid, auth_token, provider_timeout())
        account = client.api.v2010.accounts(account_sid).fetch()
    except (TwilioException, requests.RequestException) as e:
        logger.warning(f"Twilio credential validation failed: {str(e)}")
        return ValidationResult(False, error=str(e) or 'Invalid Twilio credentials')

    return ValidationResult(True, details={
        'account_sid': account.sid,
        'friendly_name': account.friendly_name,
        'status': account.status,
    })


def validate_msg91_credentials(auth_key: str) -> ValidationResult:
    try:
        response = requests.get(
            MSG91_BALANCE_URL,
            headers={'authkey': auth_key, 'Content-Type': 'application/json'},
            timeout=provider_timeout(),
        )
    except requests.RequestException as e:
        return ValidationResult(False, error=str(e) or 'Invalid MSG91 credentials')

    data = _json_or_empty(response)
    if not response.ok:
        return ValidationResult(False, error=data.get('message') or 'Invalid MSG91 credentials')

    return ValidationResult(True, details={
        'balance': data.get('balance', data),
        'currency': data.get('currency', 'USD'),
    })


def validate_email_credentials(provider: str, api_key: str) -> ValidationResult:
    """Check a SendGrid or Resend API key against the provider's account endpoint"""
    if provider == ProviderType.SENDGRID.value:
        url = SENDGRID_ACCOUNT_URL
    elif provider == ProviderType.RESEND.value:
        url = RESEND_API_KEYS_URL
    else:
        return ValidationResult(False, error='Unsupported email provider')

    try:
        response = requests.get(
            url,
            headers={'Authorization': f'Bearer {api_key}', 'Content-Type': 'application/json'},
            timeout=provider_timeout(),
        )
    except requests.RequestException as e:
        return ValidationResult(False, error=str(e) or 'Invalid email credentials')

    data = _json_or_empty(response)
    if provider == ProviderType.SENDGRID.value:
        if not response.ok:
            errors = data.get('errors') or [{}]
            return ValidationResult(False, error=errors[0].get('message') or 'Invalid SendGrid credentials')
        return ValidationResult(True, details={'email': data.get('email'), 'type': data.get('type')})

    if not response.ok:
        return ValidationResult(False, error='Invalid Resend credentials')
    return ValidationResult(True, details={'provider': ProviderType.RESEND.value})


def validate_smtp_credentials(smtp_host: str, smtp_port=587, username='', password='',
                              use_tls=True, use_ssl=False) -> ValidationResult:
    connection = get_connection(
        backend='django.core.mail.backends.smtp.EmailBackend',
        host=smtp_host,
        port=int(smtp_port or 587),
        username=username or '',
        password=password or '',
        use_tls=bool(use_tls) and not use_ssl,
        use_ssl=bool(use_ssl),
        timeout=provider_timeout(),
        fail_silently=False,
    )
    try:
        connection.open()
    except Exception as e:
        logger.warning(f"SMTP credential validation failed for {smtp_host}: {str(e)}")
        return ValidationResult(False, error=str(e) or 'Could not connect to SMTP server')
    finally:
        connection.close()

    return ValidationResult(True, details={'smtp_host': smtp_host, 'smtp_port': int(smtp_port or 587)})


def validate_provider_credentials(channel: str, provider: Optional[str], secrets: dict) -> ValidationResult:
    """
    Validate secrets for a (channel, provider) pair against the live provider.

    Never raises: unknown channels/providers and missing fields come back as
    valid=False. Secrets carrying the mock sentinel are accepted without any
    network call so tenants can run in dev mode.
    """
    secrets = secrets or {}
    try:
        provider = Dispatcher.resolve_provider(channel, {'provider': provider})
    except UnsupportedChannelError as e:
        return ValidationResult(False, error=str(e))

    if (channel, provider) not in Dispatcher.handlers:
        return ValidationResult(False, error=f"Provider {provider} is not supported for channel {channel}")

    secret_key = MOCK_SECRET_KEYS[provider]
    if not secrets.get(secret_key):
        return ValidationResult(False, error=f"{secret_key} is required for {provider}")
    if is_mock_secret(secrets[secret_key]):
        return ValidationResult(True, details={'mode': 'mock'})

    if provider == ProviderType.TWILIO.value:
        if not secrets.get('auth_token'):
            return ValidationResult(False, error='account_sid and auth_token are required')
        return validate_twilio_credentials(secrets['account_sid'], secrets['auth_token'])

    if provider == ProviderType.MSG91.value:
        return validate_msg91_credentials(secrets['auth_key'])

    if provider == ProviderType.SMTP.value:
        return validate_smtp_credentials(
            secrets['smtp_host'],
            smtp_port=secrets.get('smtp_port', 587),
            username=secrets.get('username', ''),
            password=secrets.get('password', ''),
            use_tls=secrets.get('use_tls', True),
            use_ssl=secrets.get('use_ssl', False),
        )

    if channel == ChannelType.EMAIL.value:
        return validate_email_credentials(provider, secrets['api_key'])

    return ValidationResult(False, error=f"No validator for {channel}/{provider}")
