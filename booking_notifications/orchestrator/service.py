from typing import List, Optional
import asyncio
import logging

from asgiref.sync import sync_to_async
from django.conf import settings

from booking_notifications.channels.base import SendResult
from booking_notifications.models import Audience, ChannelType, DEFAULT_FALLBACK_ORDER
from booking_notifications.orchestrator.dispatcher import Dispatcher, DEFAULT_PROVIDERS
from booking_notifications.orchestrator.logger import EventLog, UsageTracker
from booking_notifications.orchestrator.repositories import SettingsRepository, CredentialRepository
from booking_notifications.templating import build_payload

logger = logging.getLogger('booking_notifications.orchestrator')

# Recipient field each channel needs
RECIPIENT_FIELDS = {
    ChannelType.EMAIL.value: 'email',
    ChannelType.SMS.value: 'phone',
    ChannelType.WHATSAPP.value: 'phone',
}


class NotificationService:
    """
    Delivers booking notifications over the tenant's channels in fallback order.

    Channels are tried one at a time and delivery stops at the first success.
    Every attempt writes one NotificationEvent and bumps the day's usage
    counter. Nothing raised while delivering reaches the caller.
    """

    def __init__(self, settings_repository=None, credential_repository=None, event_log=None,
                 usage_tracker=None, dispatcher=Dispatcher, timeout: Optional[float] = None):
        self.settings_repository = settings_repository or SettingsRepository()
        self.credential_repository = credential_repository or CredentialRepository()
        self.event_log = event_log or EventLog()
        self.usage_tracker = usage_tracker or UsageTracker()
        self.dispatcher = dispatcher
        self.timeout = timeout if timeout is not None else float(
            getattr(settings, 'NOTIFICATION_PROVIDER_TIMEOUT', 10)
        )

    # Entry points for booking handlers

    def send_notification(self, tenant_id, notification_type: str, recipient: dict,
                          booking_id=None, template_data: Optional[dict] = None) -> None:
        self._enqueue(tenant_id, notification_type, recipient, booking_id, template_data, Audience.CUSTOMER.value)

    def send_staff_notification(self, tenant_id, notification_type: str, recipient: dict,
                                booking_id=None, template_data: Optional[dict] = None) -> None:
        self._enqueue(tenant_id, notification_type, recipient, booking_id, template_data, Audience.STAFF.value)

    def _enqueue(self, tenant_id, notification_type, recipient, booking_id, template_data, audience):
        from booking_notifications.tasks import deliver_notification_task
        try:
            deliver_notification_task.delay(
                str(tenant_id), notification_type, dict(recipient or {}), booking_id, template_data, audience
            )
        except Exception as e:
            logger.error(f"Failed to queue {audience} {notification_type} notification for tenant {tenant_id}: {str(e)}")

    # Delivery

    def get_candidate_channels(self, notification_settings, recipient: dict,
                               audience: str = Audience.CUSTOMER.value) -> List[str]:
        recipient = recipient or {}
        order = notification_settings.fallback_order or DEFAULT_FALLBACK_ORDER
        return [
            channel for channel in order
            if channel in RECIPIENT_FIELDS
            and notification_settings.channel_enabled(channel, audience)
            and recipient.get(RECIPIENT_FIELDS[channel])
        ]

    async def deliver(self, tenant_id, notification_type: str, recipient: dict, booking_id=None,
                      template_data: Optional[dict] = None,
                      audience: str = Audience.CUSTOMER.value) -> List[SendResult]:
        recipient = recipient or {}
        notification_settings = await sync_to_async(self.settings_repository.get_notification_settings)(tenant_id)
        if notification_settings is None:
            logger.info(f"No notification settings for tenant {tenant_id}; skipping {notification_type}")
            return []

        if not notification_settings.notification_type_enabled(notification_type, audience):
            logger.info(f"{audience} {notification_type} notifications disabled for tenant {tenant_id}")
            return []

        channels = self.get_candidate_channels(notification_settings, recipient, audience)
        if not channels:
            logger.warning(f"No eligible channel for {audience} {notification_type} (tenant {tenant_id})")
            return []

        results = []
        for channel in channels:
            result = await self._attempt(tenant_id, channel, notification_type, recipient, template_data, audience)
            results.append(result)
            await self._record(tenant_id, booking_id, channel, recipient, notification_type, audience, result)
            if result.success:
                logger.info(f"✅ {notification_type} delivered via {channel} for tenant {tenant_id}")
                return results
            logger.warning(f"{channel} attempt failed for tenant {tenant_id}: {result.error}")

        logger.warning(
            f"All channels failed for {audience} {notification_type} (tenant {tenant_id}, "
            f"booking {booking_id}): tried {', '.join(channels)}"
        )
        return results

    async def _attempt(self, tenant_id, channel, notification_type, recipient, template_data, audience) -> SendResult:
        provider = DEFAULT_PROVIDERS.get(channel, 'unknown')
        try:
            payload = build_payload(channel, notification_type, recipient, template_data, audience)
            credential = await sync_to_async(self.credential_repository.get_credentials_by_channel)(tenant_id, channel)
            if credential is None:
                logger.info(f"No {channel} credentials for tenant {tenant_id}; using dev mode")
                credentials = self.dispatcher.mock_credentials(channel)
            else:
                provider = credential.provider
                credentials = self.credential_repository.resolve(credential)

            adapter = self.dispatcher.get_adapter(channel, credentials)
            provider = adapter.provider
            return await asyncio.wait_for(adapter.send(payload), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{channel}/{provider} timed out after {self.timeout}s for tenant {tenant_id}")
            return SendResult(False, channel, provider, error=f'timeout: no response after {self.timeout}s')
        except Exception as e:
            logger.exception(f"Error sending {channel} notification for tenant {tenant_id}: {str(e)}")
            return SendResult(False, channel, provider, error=str(e) or type(e).__name__)

    async def _record(self, tenant_id, booking_id, channel, recipient, notification_type, audience, result):
        try:
            await sync_to_async(self.event_log.log_event)(
                tenant_id, booking_id, channel, result.provider, recipient, notification_type, audience, result
            )
            await sync_to_async(self.usage_tracker.track_usage)(
                tenant_id, channel, result.success, result.estimated_cost
            )
        except Exception as e:
            logger.exception(f"Failed to record {channel} attempt for tenant {tenant_id}: {str(e)}")

    async def send_test_message(self, tenant_id, channel: str, to: str, notification_type: str,
                                template_data: Optional[dict] = None) -> SendResult:
        """One attempt on one channel with the tenant's credentials; nothing is logged or counted"""
        recipient = {RECIPIENT_FIELDS[channel]: to}
        return await self._attempt(tenant_id, channel, notification_type, recipient, template_data,
                                   Audience.CUSTOMER.value)
