from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Protocol
import time
import uuid

from django.conf import settings

# Placeholder secret that switches an adapter into development mode
MOCK_SENTINEL = 'mock'


@dataclass
class NotificationPayload:
    to: str
    message: str
    subject: Optional[str] = None
    html: Optional[str] = None
    template_data: Optional[Dict[str, Any]] = None


@dataclass
class SendResult:
    success: bool
    channel: str
    provider: str
    external_id: Optional[str] = None
    error: Optional[str] = None
    estimated_cost: Decimal = Decimal('0')

    def to_dict(self) -> dict:
        data = asdict(self)
        data['estimated_cost'] = str(self.estimated_cost)
        return data


class ChannelAdapter(Protocol):
    """Anything that can deliver one payload over one (channel, provider) pair."""
    channel: str
    provider: str

    async def send(self, payload: NotificationPayload) -> SendResult:
        ...


def is_mock_secret(value) -> bool:
    return not value or value == MOCK_SENTINEL


def mock_external_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def preview(text: Optional[str], limit: int = 100) -> str:
    if not text:
        return ''
    return text if len(text) <= limit else text[:limit] + '...'


def provider_timeout() -> float:
    return float(getattr(settings, 'NOTIFICATION_PROVIDER_TIMEOUT', 10))


def rate_setting(name: str) -> Decimal:
    try:
        return Decimal(str(getattr(settings, name, '0')))
    except InvalidOperation:
        return Decimal('0')
