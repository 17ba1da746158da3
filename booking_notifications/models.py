from django.db import models
from django.utils import timezone
from django.core.exceptions import ValidationError
from enum import Enum
from decimal import Decimal
import uuid
from django.db.models import JSONField
import logging

logger = logging.getLogger('booking_notifications')


class ChannelType(Enum):
    EMAIL = 'email'
    SMS = 'sms'
    WHATSAPP = 'whatsapp'


class NotificationType(Enum):
    CONFIRMATION = 'confirmation'
    MODIFICATION = 'modification'
    CANCELLATION = 'cancellation'
    REMINDER = 'reminder'


class Audience(Enum):
    CUSTOMER = 'customer'
    STAFF = 'staff'


class ProviderType(Enum):
    SENDGRID = 'sendgrid'
    RESEND = 'resend'
    SMTP = 'smtp'
    TWILIO = 'twilio'
    MSG91 = 'msg91'


class EventStatus(Enum):
    SENT = 'sent'
    FAILED = 'failed'
    DELIVERED = 'delivered'
    UNDELIVERED = 'undelivered'


class HealthStatus(Enum):
    UNKNOWN = 'unknown'
    HEALTHY = 'healthy'
    FAILING = 'failing'


# Order used when a tenant has not configured one
DEFAULT_FALLBACK_ORDER = [ChannelType.EMAIL.value, ChannelType.SMS.value, ChannelType.WHATSAPP.value]


def _choices(enum_cls):
    return [(tag.value, tag.name) for tag in enum_cls]


def validate_fallback_order(value):
    if not isinstance(value, list):
        raise ValidationError("Fallback order must be a list of channel names.")
    known = {tag.value for tag in ChannelType}
    unknown = [ch for ch in value if ch not in known]
    if unknown:
        raise ValidationError(f"Unknown channel(s) in fallback order: {', '.join(map(str, unknown))}")
    if len(set(value)) != len(value):
        raise ValidationError("Fallback order must not repeat a channel.")
    return value


class SoftDeleteQuerySet(models.query.QuerySet):
    def delete(self):
        self.update(is_deleted=True, deleted_at=timezone.now())


class SoftDeleteManager(models.Manager):
    def get_queryset(self):
        return SoftDeleteQuerySet(self.model, using=self._db).filter(is_deleted=False)

    def all_with_deleted(self):
        return super().get_queryset()


class TenantNotificationSettings(models.Model):
    """Per-tenant channel toggles, fallback order and event-type switches."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField(unique=True)

    # Customer-facing channels
    email_enabled = models.BooleanField(default=True)
    sms_enabled = models.BooleanField(default=False)
    whatsapp_enabled = models.BooleanField(default=False)

    # Staff-facing channels
    staff_email_enabled = models.BooleanField(default=True)
    staff_sms_enabled = models.BooleanField(default=False)
    staff_whatsapp_enabled = models.BooleanField(default=False)

    fallback_order = JSONField(default=list, blank=True, validators=[validate_fallback_order])

    send_confirmation = models.BooleanField(default=True)
    send_modification = models.BooleanField(default=True)
    send_cancellation = models.BooleanField(default=True)
    send_reminder = models.BooleanField(default=True)

    staff_send_confirmation = models.BooleanField(default=True)
    staff_send_modification = models.BooleanField(default=True)
    staff_send_cancellation = models.BooleanField(default=True)
    staff_send_reminder = models.BooleanField(default=False)

    reminder_hours_before = models.PositiveIntegerField(default=24)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'tenant notification settings'

    def __str__(self):
        return f"Notification settings for {self.tenant_id}"

    def channel_enabled(self, channel: str, audience: str = Audience.CUSTOMER.value) -> bool:
        prefix = 'staff_' if audience == Audience.STAFF.value else ''
        return bool(getattr(self, f'{prefix}{channel}_enabled', False))

    def notification_type_enabled(self, notification_type: str, audience: str = Audience.CUSTOMER.value) -> bool:
        if notification_type not in {tag.value for tag in NotificationType}:
            return False
        prefix = 'staff_' if audience == Audience.STAFF.value else ''
        return bool(getattr(self, f'{prefix}send_{notification_type}', False))


class TenantChannelCredential(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField(db_index=True)
    channel = models.CharField(max_length=10, choices=_choices(ChannelType))
    provider = models.CharField(max_length=20, choices=_choices(ProviderType))
    encrypted_credentials = models.TextField()  # base64 AES-GCM blob from encrypt_json
    from_email = models.EmailField(blank=True, null=True)
    from_phone = models.CharField(max_length=32, blank=True, null=True)
    health_status = models.CharField(max_length=10, choices=_choices(HealthStatus), default=HealthStatus.UNKNOWN.value)
    last_tested_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SoftDeleteManager()

    class Meta:
        unique_together = [('tenant_id', 'channel')]
        indexes = [models.Index(fields=['tenant_id', 'channel'], name='booking_not_tenant__cred_idx')]

    def __str__(self):
        return f"{self.tenant_id} - {self.channel} ({self.provider})"

    def soft_delete(self):
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=['is_deleted', 'deleted_at'])


class NotificationEvent(models.Model):
    """One row per delivery attempt; a fallback through three channels writes three rows."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField(db_index=True)
    booking_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    channel = models.CharField(max_length=10, choices=_choices(ChannelType))
    provider = models.CharField(max_length=20)
    audience = models.CharField(max_length=10, choices=_choices(Audience), default=Audience.CUSTOMER.value)
    recipient_email = models.CharField(max_length=254, blank=True, null=True)
    recipient_phone = models.CharField(max_length=32, blank=True, null=True)
    notification_type = models.CharField(max_length=20, choices=_choices(NotificationType))
    status = models.CharField(max_length=12, choices=_choices(EventStatus))
    error_message = models.TextField(blank=True, null=True)
    external_id = models.CharField(max_length=255, blank=True, null=True, db_index=True)
    estimated_cost = models.DecimalField(max_digits=10, decimal_places=4, default=Decimal('0'))
    sent_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['tenant_id', 'created_at'], name='booking_not_tenant__evt_ts_idx'),
            models.Index(fields=['tenant_id', 'status'], name='booking_not_tenant__evt_st_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.notification_type} via {self.channel} - {self.status}"


class NotificationUsage(models.Model):
    """Daily per-tenant, per-channel delivery counters."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField(db_index=True)
    channel = models.CharField(max_length=10, choices=_choices(ChannelType))
    date = models.DateField()
    success_count = models.PositiveIntegerField(default=0)
    failure_count = models.PositiveIntegerField(default=0)
    estimated_cost = models.DecimalField(max_digits=12, decimal_places=4, default=Decimal('0'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['tenant_id', 'channel', 'date'], name='unique_usage_per_tenant_channel_day'),
        ]
        ordering = ['-date', 'channel']

    def __str__(self):
        return f"{self.tenant_id} {self.channel} {self.date}: {self.success_count} ok / {self.failure_count} failed"
