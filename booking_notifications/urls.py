from django.urls import path
from .views import (
    HealthView, TenantNotificationSettingsView,
    TenantChannelCredentialListCreateView, TenantChannelCredentialDetailView, TenantChannelCredentialTestView,
    NotificationEventListView, NotificationUsageListView, AnalyticsView, TestSendView,
    TwilioStatusWebhookView, Msg91StatusWebhookView,
)

app_name = 'booking_notifications'

urlpatterns = [
    path('health/', HealthView.as_view(), name='health'),

    # Tenant configuration
    path('settings/', TenantNotificationSettingsView.as_view(), name='settings'),
    path('credentials/', TenantChannelCredentialListCreateView.as_view(), name='credentials-list-create'),
    path('credentials/<uuid:pk>/', TenantChannelCredentialDetailView.as_view(), name='credentials-detail'),
    path('credentials/<uuid:pk>/test/', TenantChannelCredentialTestView.as_view(), name='credentials-test'),

    # Delivery log and accounting
    path('events/', NotificationEventListView.as_view(), name='event-list'),
    path('usage/', NotificationUsageListView.as_view(), name='usage-list'),
    path('analytics/', AnalyticsView.as_view(), name='analytics'),
    path('test-send/', TestSendView.as_view(), name='test-send'),

    # Provider delivery receipts
    path('webhooks/twilio/status/', TwilioStatusWebhookView.as_view(), name='twilio-status-webhook'),
    path('webhooks/msg91/status/', Msg91StatusWebhookView.as_view(), name='msg91-status-webhook'),
]
