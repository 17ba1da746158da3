# Tasks package

from .tasks import deliver_notification_task

__all__ = [
    'deliver_notification_task',
]
