from decimal import Decimal
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
import logging

from booking_notifications.channels.base import SendResult
from booking_notifications.models import NotificationEvent, NotificationUsage, EventStatus, Audience

logger = logging.getLogger('booking_notifications.orchestrator')


class EventLog:
    """Append-only record of delivery attempts"""

    def log_event(self, tenant_id, booking_id, channel: str, provider: str, recipient: dict,
                  notification_type: str, audience: str, result: SendResult) -> NotificationEvent:
        recipient = recipient or {}
        event = NotificationEvent.objects.create(
            tenant_id=tenant_id,
            booking_id=booking_id,
            channel=channel,
            provider=provider,
            audience=audience or Audience.CUSTOMER.value,
            recipient_email=recipient.get('email'),
            recipient_phone=recipient.get('phone'),
            notification_type=notification_type,
            status=EventStatus.SENT.value if result.success else EventStatus.FAILED.value,
            error_message=result.error,
            external_id=result.external_id,
            estimated_cost=result.estimated_cost or Decimal('0'),
            sent_at=timezone.now() if result.success else None,
        )
        logger.info(
            f"Audit: {notification_type} via {channel}/{provider} for tenant {tenant_id} "
            f"-> {event.status}{f' ({result.error})' if result.error else ''}"
        )
        return event

    def update_status(self, external_id: str, status: str, error_message=None, delivered_at=None) -> int:
        """Patch status (and error when given) of the attempt with this provider id.

        delivered_at keeps the first delivery time; later receipts (e.g. WhatsApp 'read') do not move it.
        """
        if not external_id:
            return 0
        changes = {'status': status}
        if error_message is not None:
            changes['error_message'] = error_message
        events = NotificationEvent.objects.filter(external_id=external_id)
        with transaction.atomic():
            updated = events.update(**changes)
            if delivered_at is not None:
                events.filter(delivered_at__isnull=True).update(delivered_at=delivered_at)
        if updated:
            logger.info(f"Delivery status for {external_id} -> {status}")
        else:
            logger.info(f"No notification event found for external id {external_id}")
        return updated


class UsageTracker:
    """Daily per-tenant, per-channel success/failure counters"""

    def _increment(self, tenant_id, channel: str, day, success: bool, cost: Decimal) -> int:
        counter = 'success_count' if success else 'failure_count'
        return NotificationUsage.objects.filter(tenant_id=tenant_id, channel=channel, date=day).update(
            **{counter: F(counter) + 1},
            estimated_cost=F('estimated_cost') + cost,
            updated_at=timezone.now(),
        )

    def track_usage(self, tenant_id, channel: str, success: bool, cost=Decimal('0')) -> None:
        day = timezone.now().date()
        cost = Decimal(str(cost or 0))
        if self._increment(tenant_id, channel, day, success, cost):
            return

        try:
            with transaction.atomic():
                NotificationUsage.objects.create(
                    tenant_id=tenant_id,
                    channel=channel,
                    date=day,
                    success_count=1 if success else 0,
                    failure_count=0 if success else 1,
                    estimated_cost=cost,
                )
        except IntegrityError:
            # Another worker created today's row first
            self._increment(tenant_id, channel, day, success, cost)
