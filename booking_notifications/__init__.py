def get_notification_service():
    """The NotificationService built once when the app registry is ready"""
    from django.apps import apps
    return apps.get_app_config('booking_notifications').notification_service
