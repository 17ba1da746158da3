from asgiref.sync import sync_to_async
from django.conf import settings
import logging
import requests

from twilio.base.exceptions import TwilioException, TwilioRestException

from booking_notifications.models import ChannelType, ProviderType
from .base import (
    NotificationPayload, SendResult, is_mock_secret, mock_external_id, preview,
    provider_timeout, rate_setting,
)
from .sms_handler import describe_twilio_error, msg91_post, national_digits, twilio_client

logger = logging.getLogger('booking_notifications.channels.whatsapp')

MSG91_WHATSAPP_URL = 'https://api.msg91.com/api/v5/whatsapp/whatsapp-outbound-message/'


def whatsapp_address(phone: str) -> str:
    return phone if phone.startswith('whatsapp:') else f'whatsapp:{phone}'


def _dev_mode_result(provider: str, from_phone: str, payload: NotificationPayload) -> SendResult:
    logger.info(
        f"📱 [WHATSAPP - DEV MODE] provider={provider} from={from_phone} "
        f"to={payload.to} message={preview(payload.message)!r}"
    )
    return SendResult(
        success=True,
        channel=ChannelType.WHATSAPP.value,
        provider=provider,
        external_id=mock_external_id('mock-wa'),
    )


class TwilioWhatsAppAdapter:
    """WhatsApp through the Twilio Messages API with whatsapp: addressed numbers"""
    channel = ChannelType.WHATSAPP.value
    provider = ProviderType.TWILIO.value

    def __init__(self, credentials: dict):
        self.account_sid = credentials.get('account_sid')
        self.auth_token = credentials.get('auth_token')
        self.from_phone = credentials.get('from_phone') or getattr(settings, 'NOTIFICATION_DEFAULT_FROM_PHONE', '')
        self.timeout = provider_timeout()

    @property
    def mock_mode(self) -> bool:
        return is_mock_secret(self.account_sid)

    def _create_message(self, payload: NotificationPayload):
        client = twilio_client(self.account_sid, self.auth_token, self.timeout)
        return client.messages.create(
            body=payload.message,
            from_=whatsapp_address(self.from_phone),
            to=whatsapp_address(payload.to),
        )

    async def send(self, payload: NotificationPayload) -> SendResult:
        if self.mock_mode:
            return _dev_mode_result(self.provider, self.from_phone, payload)

        try:
            message = await sync_to_async(self._create_message, thread_sensitive=False)(payload)
        except TwilioRestException as e:
            logger.error(f"Twilio error for WhatsApp to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=describe_twilio_error(e))
        except TwilioException as e:
            logger.error(f"Twilio client error for WhatsApp to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=f'provider_error: {str(e)}')
        except requests.RequestException as e:
            logger.error(f"WhatsApp transport error to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=str(e))

        logger.info(f"WhatsApp message sent successfully: {message.sid}")
        return SendResult(
            success=True,
            channel=self.channel,
            provider=self.provider,
            external_id=message.sid,
            estimated_cost=rate_setting('WHATSAPP_COST_PER_MESSAGE'),
        )


class Msg91WhatsAppAdapter:
    channel = ChannelType.WHATSAPP.value
    provider = ProviderType.MSG91.value

    def __init__(self, credentials: dict):
        self.auth_key = credentials.get('auth_key')
        # MSG91 calls the sending WhatsApp number the "integrated number"
        self.from_phone = credentials.get('from_phone') or getattr(settings, 'NOTIFICATION_DEFAULT_FROM_PHONE', '')
        self.timeout = provider_timeout()

    @property
    def mock_mode(self) -> bool:
        return is_mock_secret(self.auth_key)

    def _post(self, payload: NotificationPayload) -> dict:
        body = {
            'integrated_number': national_digits(self.from_phone),
            'content_type': 'text',
            'payload': {
                'to': national_digits(payload.to),
                'type': 'text',
                'text': {'body': payload.message},
            },
        }
        return msg91_post(MSG91_WHATSAPP_URL, self.auth_key, body, self.timeout)

    async def send(self, payload: NotificationPayload) -> SendResult:
        if self.mock_mode:
            return _dev_mode_result(self.provider, self.from_phone, payload)

        try:
            data = await sync_to_async(self._post, thread_sensitive=False)(payload)
        except requests.RequestException as e:
            logger.error(f"MSG91 WhatsApp error to {payload.to}: {str(e)}")
            return SendResult(False, self.channel, self.provider, error=str(e))

        request_id = data.get('request_id') or (data.get('data') or {}).get('request_id')
        logger.info(f"WhatsApp message sent via MSG91: {request_id}")
        return SendResult(
            success=True,
            channel=self.channel,
            provider=self.provider,
            external_id=str(request_id) if request_id else None,
            estimated_cost=rate_setting('WHATSAPP_COST_PER_MESSAGE'),
        )
