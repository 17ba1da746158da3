import pytest
from django.test import TestCase
from django.core.exceptions import ValidationError
from booking_notifications.models import (
    TenantNotificationSettings, TenantChannelCredential, NotificationUsage,
    ChannelType, NotificationType, Audience, HealthStatus, validate_fallback_order,
)


class TenantNotificationSettingsTest(TestCase):
    """Channel and notification-type toggles"""

    def setUp(self):
        self.tenant_id = "550e8400-e29b-41d4-a716-446655440000"

    def test_defaults(self):
        settings = TenantNotificationSettings.objects.create(tenant_id=self.tenant_id)

        self.assertTrue(settings.email_enabled)
        self.assertFalse(settings.sms_enabled)
        self.assertFalse(settings.whatsapp_enabled)
        self.assertEqual(settings.fallback_order, [])
        self.assertEqual(settings.reminder_hours_before, 24)
        self.assertFalse(settings.staff_send_reminder)

    def test_channel_enabled_per_audience(self):
        settings = TenantNotificationSettings.objects.create(
            tenant_id=self.tenant_id,
            sms_enabled=False,
            staff_sms_enabled=True,
        )

        self.assertFalse(settings.channel_enabled(ChannelType.SMS.value, Audience.CUSTOMER.value))
        self.assertTrue(settings.channel_enabled(ChannelType.SMS.value, Audience.STAFF.value))
        self.assertFalse(settings.channel_enabled('push'))

    def test_notification_type_enabled_per_audience(self):
        settings = TenantNotificationSettings.objects.create(
            tenant_id=self.tenant_id,
            send_cancellation=False,
            staff_send_cancellation=True,
        )

        self.assertFalse(settings.notification_type_enabled(NotificationType.CANCELLATION.value))
        self.assertTrue(settings.notification_type_enabled(NotificationType.CANCELLATION.value, Audience.STAFF.value))
        self.assertTrue(settings.notification_type_enabled(NotificationType.CONFIRMATION.value))
        self.assertFalse(settings.notification_type_enabled('promotion'))

    def test_fallback_order_validation_on_full_clean(self):
        settings = TenantNotificationSettings(tenant_id=self.tenant_id, fallback_order=['sms', 'fax'])
        with self.assertRaises(ValidationError):
            settings.full_clean()


class FallbackOrderValidatorTest(TestCase):
    def test_accepts_known_channels(self):
        self.assertEqual(validate_fallback_order(['whatsapp', 'email']), ['whatsapp', 'email'])
        self.assertEqual(validate_fallback_order([]), [])

    def test_rejects_duplicates(self):
        with self.assertRaises(ValidationError):
            validate_fallback_order(['sms', 'sms'])

    def test_rejects_non_list(self):
        with self.assertRaises(ValidationError):
            validate_fallback_order('email,sms')


class TenantChannelCredentialTest(TestCase):
    def setUp(self):
        self.tenant_id = "550e8400-e29b-41d4-a716-446655440000"

    def test_soft_delete_hides_row(self):
        credential = TenantChannelCredential.objects.create(
            tenant_id=self.tenant_id,
            channel=ChannelType.EMAIL.value,
            provider='sendgrid',
            encrypted_credentials='blob',
        )
        self.assertEqual(credential.health_status, HealthStatus.UNKNOWN.value)

        credential.soft_delete()

        self.assertEqual(TenantChannelCredential.objects.count(), 0)
        self.assertEqual(TenantChannelCredential.objects.all_with_deleted().count(), 1)
        self.assertEqual(TenantChannelCredential.objects.all_with_deleted().filter(is_deleted=True).count(), 1)
        self.assertIsNotNone(TenantChannelCredential.objects.all_with_deleted().get().deleted_at)


@pytest.mark.django_db
def test_usage_row_is_unique_per_tenant_channel_day(tenant_id):
    from django.db import IntegrityError, transaction
    from django.utils import timezone

    today = timezone.now().date()
    NotificationUsage.objects.create(tenant_id=tenant_id, channel='email', date=today)
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            NotificationUsage.objects.create(tenant_id=tenant_id, channel='email', date=today)
    NotificationUsage.objects.create(tenant_id=tenant_id, channel='sms', date=today)
    assert NotificationUsage.objects.count() == 2
