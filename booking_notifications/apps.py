from django.apps import AppConfig


class BookingNotificationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'booking_notifications'
    verbose_name = 'Booking Notifications'

    notification_service = None

    def ready(self):
        from booking_notifications.orchestrator.service import NotificationService
        self.notification_service = NotificationService()
