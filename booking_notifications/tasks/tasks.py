from asgiref.sync import async_to_sync
from celery import shared_task
import logging

from booking_notifications.models import Audience

logger = logging.getLogger('booking_notifications.tasks')


@shared_task
def deliver_notification_task(tenant_id: str, notification_type: str, recipient: dict, booking_id=None,
                              template_data=None, audience: str = Audience.CUSTOMER.value):
    """Run one logical notification through the fallback chain. Failed deliveries are not retried."""
    from booking_notifications import get_notification_service

    try:
        service = get_notification_service()
        results = async_to_sync(service.deliver)(
            tenant_id, notification_type, recipient,
            booking_id=booking_id, template_data=template_data, audience=audience,
        )
    except Exception as e:
        logger.exception(f"Notification delivery crashed for tenant {tenant_id} ({notification_type}): {str(e)}")
        return []

    return [result.to_dict() for result in results]
