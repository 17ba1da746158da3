import logging
from rest_framework import serializers
from booking_notifications.models import (
    TenantNotificationSettings, TenantChannelCredential, NotificationEvent, NotificationUsage,
    ChannelType, NotificationType, ProviderType,
)
from booking_notifications.orchestrator.dispatcher import Dispatcher, DEFAULT_PROVIDERS

logger = logging.getLogger('booking_notifications.api')


class TenantNotificationSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = TenantNotificationSettings
        fields = [
            'id', 'tenant_id',
            'email_enabled', 'sms_enabled', 'whatsapp_enabled',
            'staff_email_enabled', 'staff_sms_enabled', 'staff_whatsapp_enabled',
            'fallback_order',
            'send_confirmation', 'send_modification', 'send_cancellation', 'send_reminder',
            'staff_send_confirmation', 'staff_send_modification', 'staff_send_cancellation', 'staff_send_reminder',
            'reminder_hours_before',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'tenant_id', 'created_at', 'updated_at']


class TenantChannelCredentialSerializer(serializers.ModelSerializer):
    """Stored credential as shown to operators; secrets are never returned"""

    class Meta:
        model = TenantChannelCredential
        fields = [
            'id', 'channel', 'provider', 'from_email', 'from_phone', 'health_status',
            'last_tested_at', 'last_error', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'channel', 'provider', 'health_status', 'last_tested_at', 'last_error',
            'created_at', 'updated_at',
        ]


class CredentialWriteSerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=[tag.value for tag in ChannelType])
    provider = serializers.ChoiceField(choices=[tag.value for tag in ProviderType], required=False)
    credentials = serializers.DictField()
    from_email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    from_phone = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=32)

    def validate(self, attrs):
        channel = attrs['channel']
        provider = attrs.get('provider') or DEFAULT_PROVIDERS[channel]
        if (channel, provider) not in Dispatcher.handlers:
            raise serializers.ValidationError({'provider': f"{provider} cannot deliver {channel} messages."})
        attrs['provider'] = provider
        attrs['from_email'] = attrs.get('from_email') or None
        attrs['from_phone'] = attrs.get('from_phone') or None
        return attrs


class NotificationEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationEvent
        fields = '__all__'


class NotificationUsageSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationUsage
        fields = [
            'id', 'tenant_id', 'channel', 'date', 'success_count', 'failure_count',
            'estimated_cost', 'created_at', 'updated_at',
        ]


class TestSendSerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=[tag.value for tag in ChannelType])
    to = serializers.CharField(max_length=254)
    notification_type = serializers.ChoiceField(
        choices=[tag.value for tag in NotificationType], default=NotificationType.CONFIRMATION.value
    )
    template_data = serializers.DictField(required=False)

    def validate(self, attrs):
        if attrs['channel'] == ChannelType.EMAIL.value:
            try:
                serializers.EmailField().run_validation(attrs['to'])
            except serializers.ValidationError as e:
                raise serializers.ValidationError({'to': e.detail})
        return attrs
