from booking_notifications.channels.base import ChannelAdapter, MOCK_SENTINEL
from booking_notifications.channels.email_handler import SendGridEmailAdapter, ResendEmailAdapter, SmtpEmailAdapter
from booking_notifications.channels.sms_handler import TwilioSmsAdapter, Msg91SmsAdapter
from booking_notifications.channels.whatsapp_handler import TwilioWhatsAppAdapter, Msg91WhatsAppAdapter
from booking_notifications.models import ChannelType, ProviderType
from booking_notifications.utils.exceptions import UnsupportedChannelError, UnsupportedProviderError
import logging

logger = logging.getLogger('booking_notifications.orchestrator')

# Provider assumed for credentials stored before the provider field existed
DEFAULT_PROVIDERS = {
    ChannelType.EMAIL.value: ProviderType.SENDGRID.value,
    ChannelType.SMS.value: ProviderType.TWILIO.value,
    ChannelType.WHATSAPP.value: ProviderType.TWILIO.value,
}

# Credential key whose "mock" value switches each provider into dev mode
MOCK_SECRET_KEYS = {
    ProviderType.SENDGRID.value: 'api_key',
    ProviderType.RESEND.value: 'api_key',
    ProviderType.SMTP.value: 'smtp_host',
    ProviderType.TWILIO.value: 'account_sid',
    ProviderType.MSG91.value: 'auth_key',
}


class Dispatcher:
    handlers = {
        (ChannelType.EMAIL.value, ProviderType.SENDGRID.value): SendGridEmailAdapter,
        (ChannelType.EMAIL.value, ProviderType.RESEND.value): ResendEmailAdapter,
        (ChannelType.EMAIL.value, ProviderType.SMTP.value): SmtpEmailAdapter,
        (ChannelType.SMS.value, ProviderType.TWILIO.value): TwilioSmsAdapter,
        (ChannelType.SMS.value, ProviderType.MSG91.value): Msg91SmsAdapter,
        (ChannelType.WHATSAPP.value, ProviderType.TWILIO.value): TwilioWhatsAppAdapter,
        (ChannelType.WHATSAPP.value, ProviderType.MSG91.value): Msg91WhatsAppAdapter,
    }

    @classmethod
    def resolve_provider(cls, channel: str, credentials: dict) -> str:
        if channel not in DEFAULT_PROVIDERS:
            raise UnsupportedChannelError(f"Unsupported channel: {channel}")
        return (credentials or {}).get('provider') or DEFAULT_PROVIDERS[channel]

    @classmethod
    def get_adapter(cls, channel: str, credentials: dict) -> ChannelAdapter:
        provider = cls.resolve_provider(channel, credentials)
        adapter_class = cls.handlers.get((channel, provider))
        if adapter_class is None:
            raise UnsupportedProviderError(f"Provider {provider} is not supported for channel {channel}")
        logger.debug(f"Resolved {adapter_class.__name__} for {channel}/{provider}")
        return adapter_class(credentials or {})

    @classmethod
    def mock_credentials(cls, channel: str) -> dict:
        """Placeholder credentials for a channel with nothing stored; the adapter runs in dev mode"""
        provider = cls.resolve_provider(channel, {})
        return {'provider': provider, MOCK_SECRET_KEYS[provider]: MOCK_SENTINEL}
