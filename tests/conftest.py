import uuid
import pytest


@pytest.fixture
def tenant_id():
    """Default tenant ID for testing"""
    return uuid.UUID("550e8400-e29b-41d4-a716-446655440000")


@pytest.fixture
def other_tenant_id():
    return uuid.UUID("660e8400-e29b-41d4-a716-446655440001")


@pytest.fixture
def booking_template_data():
    """Booking data as the booking handlers pass it"""
    return {
        "customerName": "Ann",
        "spaName": "Zen",
        "spaAddress": "12 Palm Street, Dubai",
        "spaPhone": "+97140000000",
        "bookingDate": "2026-01-05",
        "bookingTime": "14:30",
        "services": [
            {"name": "Hot Stone Massage", "duration": 60, "price": "250.00"},
            {"name": "Facial", "duration": 45, "price": "180.00", "currency": "USD"},
        ],
        "staffName": "Maya",
        "totalAmount": "430.00",
        "bookingId": 42,
    }


@pytest.fixture
def notification_settings(db, tenant_id):
    """Tenant settings with model defaults (email on, sms/whatsapp off)"""
    from booking_notifications.models import TenantNotificationSettings

    return TenantNotificationSettings.objects.create(tenant_id=tenant_id)


@pytest.fixture
def api_client(tenant_id):
    """API client carrying the tenant header the gateway would add"""
    from rest_framework.test import APIClient
    client = APIClient()
    client.credentials(HTTP_X_TENANT_ID=str(tenant_id))
    return client
