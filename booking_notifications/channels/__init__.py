from .base import ChannelAdapter, NotificationPayload, SendResult, MOCK_SENTINEL
from .email_handler import SendGridEmailAdapter, ResendEmailAdapter, SmtpEmailAdapter
from .sms_handler import TwilioSmsAdapter, Msg91SmsAdapter
from .whatsapp_handler import TwilioWhatsAppAdapter, Msg91WhatsAppAdapter

__all__ = [
    'ChannelAdapter',
    'NotificationPayload',
    'SendResult',
    'MOCK_SENTINEL',
    'SendGridEmailAdapter',
    'ResendEmailAdapter',
    'SmtpEmailAdapter',
    'TwilioSmsAdapter',
    'Msg91SmsAdapter',
    'TwilioWhatsAppAdapter',
    'Msg91WhatsAppAdapter',
]
