# Generated initial migration for booking notification models

from decimal import Decimal
from django.db import migrations, models
import uuid
from django.db.models import JSONField

import booking_notifications.models


CHANNEL_CHOICES = [('email', 'EMAIL'), ('sms', 'SMS'), ('whatsapp', 'WHATSAPP')]
NOTIFICATION_TYPE_CHOICES = [
    ('confirmation', 'CONFIRMATION'), ('modification', 'MODIFICATION'),
    ('cancellation', 'CANCELLATION'), ('reminder', 'REMINDER'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='TenantNotificationSettings',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('tenant_id', models.UUIDField(unique=True)),
                ('email_enabled', models.BooleanField(default=True)),
                ('sms_enabled', models.BooleanField(default=False)),
                ('whatsapp_enabled', models.BooleanField(default=False)),
                ('staff_email_enabled', models.BooleanField(default=True)),
                ('staff_sms_enabled', models.BooleanField(default=False)),
                ('staff_whatsapp_enabled', models.BooleanField(default=False)),
                ('fallback_order', JSONField(blank=True, default=list, validators=[booking_notifications.models.validate_fallback_order])),
                ('send_confirmation', models.BooleanField(default=True)),
                ('send_modification', models.BooleanField(default=True)),
                ('send_cancellation', models.BooleanField(default=True)),
                ('send_reminder', models.BooleanField(default=True)),
                ('staff_send_confirmation', models.BooleanField(default=True)),
                ('staff_send_modification', models.BooleanField(default=True)),
                ('staff_send_cancellation', models.BooleanField(default=True)),
                ('staff_send_reminder', models.BooleanField(default=False)),
                ('reminder_hours_before', models.PositiveIntegerField(default=24)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name_plural': 'tenant notification settings',
            },
        ),
        migrations.CreateModel(
            name='TenantChannelCredential',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('tenant_id', models.UUIDField(db_index=True)),
                ('channel', models.CharField(choices=CHANNEL_CHOICES, max_length=10)),
                ('provider', models.CharField(choices=[('sendgrid', 'SENDGRID'), ('resend', 'RESEND'), ('smtp', 'SMTP'), ('twilio', 'TWILIO'), ('msg91', 'MSG91')], max_length=20)),
                ('encrypted_credentials', models.TextField()),
                ('from_email', models.EmailField(blank=True, max_length=254, null=True)),
                ('from_phone', models.CharField(blank=True, max_length=32, null=True)),
                ('health_status', models.CharField(choices=[('unknown', 'UNKNOWN'), ('healthy', 'HEALTHY'), ('failing', 'FAILING')], default='unknown', max_length=10)),
                ('last_tested_at', models.DateTimeField(blank=True, null=True)),
                ('last_error', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('is_deleted', models.BooleanField(default=False)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'unique_together': {('tenant_id', 'channel')},
            },
        ),
        migrations.CreateModel(
            name='NotificationEvent',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('tenant_id', models.UUIDField(db_index=True)),
                ('booking_id', models.BigIntegerField(blank=True, db_index=True, null=True)),
                ('channel', models.CharField(choices=CHANNEL_CHOICES, max_length=10)),
                ('provider', models.CharField(max_length=20)),
                ('audience', models.CharField(choices=[('customer', 'CUSTOMER'), ('staff', 'STAFF')], default='customer', max_length=10)),
                ('recipient_email', models.CharField(blank=True, max_length=254, null=True)),
                ('recipient_phone', models.CharField(blank=True, max_length=32, null=True)),
                ('notification_type', models.CharField(choices=NOTIFICATION_TYPE_CHOICES, max_length=20)),
                ('status', models.CharField(choices=[('sent', 'SENT'), ('failed', 'FAILED'), ('delivered', 'DELIVERED'), ('undelivered', 'UNDELIVERED')], max_length=12)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('external_id', models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ('estimated_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=10)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='NotificationUsage',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('tenant_id', models.UUIDField(db_index=True)),
                ('channel', models.CharField(choices=CHANNEL_CHOICES, max_length=10)),
                ('date', models.DateField()),
                ('success_count', models.PositiveIntegerField(default=0)),
                ('failure_count', models.PositiveIntegerField(default=0)),
                ('estimated_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-date', 'channel'],
            },
        ),
        migrations.AddIndex(
            model_name='tenantchannelcredential',
            index=models.Index(fields=['tenant_id', 'channel'], name='booking_not_tenant__cred_idx'),
        ),
        migrations.AddIndex(
            model_name='notificationevent',
            index=models.Index(fields=['tenant_id', 'created_at'], name='booking_not_tenant__evt_ts_idx'),
        ),
        migrations.AddIndex(
            model_name='notificationevent',
            index=models.Index(fields=['tenant_id', 'status'], name='booking_not_tenant__evt_st_idx'),
        ),
        migrations.AddConstraint(
            model_name='notificationusage',
            constraint=models.UniqueConstraint(fields=('tenant_id', 'channel', 'date'), name='unique_usage_per_tenant_channel_day'),
        ),
    ]
