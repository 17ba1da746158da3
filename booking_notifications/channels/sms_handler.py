from asgiref.sync import sync_to_async
from decimal import Decimal
from django.conf import settings
import logging
import math
import requests

from twilio.rest import Client
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient

from booking_notifications.models import ChannelType, ProviderType
from .base import (
    NotificationPayload, SendResult, is_mock_secret, mock_external_id, preview,
    provider_timeout, rate_setting,
)

logger = logging.getLogger('booking_notifications.channels.sms')

MSG91_SMS_URL = 'https://api.msg91.com/api/v2/sendsms'
SMS_SEGMENT_LENGTH = 160

# Twilio error codes with a dedicated mapping
TWILIO_INVALID_NUMBER = 21211
TWILIO_AUTH_ERROR = 20003


def estimate_sms_cost(message: str) -> Decimal:
    """Segment-based cost estimate; actual costs vary by provider and destination"""
    segments = max(1, math.ceil(len(message or '') / SMS_SEGMENT_LENGTH))
    return rate_setting('SMS_COST_PER_SEGMENT') * segments


def _from_phone(credentials: dict) -> str:
    return credentials.get('from_phone') or getattr(settings, 'NOTIFICATION_DEFAULT_FROM_PHONE', '')


def twilio_client(account_sid: str, auth_token: str, timeout: float) -> Client:
    return Client(account_sid, auth_token, http_client=TwilioHttpClient(timeout=timeout))


def describe_twilio_error(e: TwilioException) -> str:
    error_code = getattr(e, 'code', None)
    detail = getattr(e, 'msg', None) or str(e)
    if error_code == TWILIO_INVALID_NUMBER:
        return f'invalid_number: {detail}'
    if error_code == TWILIO_AUTH_ERROR:
        return f'auth_error: {detail}'
    return f'provider_error: {detail}'


def msg91_post(url: str, auth_key: str, body: dict, timeout: float) -> dict:
    """POST to MSG91; returns the decoded JSON body, raising on HTTP or API errors"""
    response = requests.post(
        url,
        json=body,
        headers={'authkey': auth_key, 'Content-Type': 'application/json'},
        timeout=timeout,
    )
    try:
        data = response.json()
    except ValueError:
        data = {}
    if not response.ok or str(data.get('type', data.get('status', ''))).lower() == 'error':
        message = data.get('message') or data.get('errors') or f'MSG91 returned HTTP {response.status_code}'
        raise requests.HTTPError(str(message), response=response)
    return data


def national_digits(phone: str) -> str:
    return ''.join(ch for ch in phone if ch.isdigit())


class TwilioSmsAdapter:
    channel = ChannelType.SMS.value
    provider = ProviderType.TWILIO.value

    def __init__(self, credentials: dict):
        self.account_sid = credentials.get('account_sid')
        self.auth_token = credentials.get('auth_token')
        self.from_phone = _from_phone(credentials)
        self.timeout = provider_timeout()
        self._client = None

    @property
    def mock_mode(self) -> bool:
        return is_mock_secret(self.account_sid)

    def _get_twilio_client(self) -> Client:
        if self._client is None:
            self._client = twilio_client(self.account_sid, self.auth_token, self.timeout)
        return self._client

    def _create_message(self, payload: NotificationPayload):
        return self._get_twilio_client().messages.create(
            body=payload.message,
            from_=self.from_phone,
            to=payload.to,
        )

    async def send(self, payload: NotificationPayload) -> SendResult:
        cost = estimate_sms_cost(payload.message)
        if self.mock_mode:
            logger.info(
                f"💬 [SMS - DEV MODE] provider={self.provider} from={self.from_phone} "
                f"to={payload.to} message={preview(payload.message)!r}"
            )
            return SendResult(
                success=True,
                channel=self.channel,
                provider=self.provider,
                external_id=mock_external_id('mock-sms'),
            )

        try:
            message = await sync_to_async(self._create_message, thread_sensitive=False)(payload)
        except TwilioRestException as e:
            logger.error(f"Twilio error for SMS to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=describe_twilio_error(e))
        except TwilioException as e:
            logger.error(f"Twilio client error for SMS to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=f'provider_error: {str(e)}')
        except requests.RequestException as e:
            logger.error(f"SMS transport error to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=str(e))

        logger.info(f"SMS sent successfully: {message.sid}")
        return SendResult(
            success=True,
            channel=self.channel,
            provider=self.provider,
            external_id=message.sid,
            estimated_cost=cost,
        )


class Msg91SmsAdapter:
    channel = ChannelType.SMS.value
    provider = ProviderType.MSG91.value

    def __init__(self, credentials: dict):
        self.auth_key = credentials.get('auth_key')
        self.sender_id = credentials.get('sender_id') or 'SPABKG'
        self.route = str(credentials.get('route') or '4')
        self.timeout = provider_timeout()

    @property
    def mock_mode(self) -> bool:
        return is_mock_secret(self.auth_key)

    def _post(self, payload: NotificationPayload) -> dict:
        body = {
            'sender': self.sender_id,
            'route': self.route,
            'country': '0',
            'sms': [{'message': payload.message, 'to': [national_digits(payload.to)]}],
        }
        return msg91_post(MSG91_SMS_URL, self.auth_key, body, self.timeout)

    async def send(self, payload: NotificationPayload) -> SendResult:
        if self.mock_mode:
            logger.info(
                f"💬 [SMS - DEV MODE] provider={self.provider} sender={self.sender_id} "
                f"to={payload.to} message={preview(payload.message)!r}"
            )
            return SendResult(
                success=True,
                channel=self.channel,
                provider=self.provider,
                external_id=mock_external_id('mock-sms'),
            )

        try:
            data = await sync_to_async(self._post, thread_sensitive=False)(payload)
        except requests.RequestException as e:
            logger.error(f"MSG91 SMS error to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=str(e))

        request_id = data.get('message') or data.get('request_id')
        logger.info(f"SMS sent via MSG91: {request_id}")
        return SendResult(
            success=True,
            channel=self.channel,
            provider=self.provider,
            external_id=str(request_id) if request_id else None,
            estimated_cost=estimate_sms_cost(payload.message),
        )
