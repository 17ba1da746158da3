import asyncio
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from unittest.mock import patch
from asgiref.sync import async_to_sync

from booking_notifications import get_notification_service
from booking_notifications.channels.base import SendResult
from booking_notifications.models import (
    TenantNotificationSettings, TenantChannelCredential, NotificationEvent, NotificationUsage,
)
from booking_notifications.orchestrator.dispatcher import Dispatcher
from booking_notifications.orchestrator.logger import UsageTracker
from booking_notifications.orchestrator.repositories import CredentialRepository
from booking_notifications.orchestrator.service import NotificationService
from booking_notifications.tasks import deliver_notification_task
from booking_notifications.utils.encryption import encrypt_json

TENANT_ID = "550e8400-e29b-41d4-a716-446655440000"
TEMPLATE_DATA = {"customerName": "Ann", "spaName": "Zen", "bookingDate": "2026-01-05", "bookingTime": "10:00"}
BOTH = {"email": "a@b.com", "phone": "+971501234567"}


class ScriptedAdapter:
    """Adapter double returning queued outcomes: True, False, an exception, or 'hang'"""

    def __init__(self, channel, outcomes, provider='scripted'):
        self.channel = channel
        self.provider = provider
        self.outcomes = list(outcomes)
        self.calls = []

    async def send(self, payload):
        self.calls.append(payload)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if outcome == 'hang':
            await asyncio.sleep(30)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return SendResult(True, self.channel, self.provider, external_id=f'{self.channel}-{len(self.calls)}',
                              estimated_cost=Decimal('0.0100'))
        return SendResult(False, self.channel, self.provider, error=f'{self.channel} provider down')


class ScriptedDispatcher:
    def __init__(self, **adapters):
        self.adapters = adapters

    def get_adapter(self, channel, credentials):
        return self.adapters[channel]

    def mock_credentials(self, channel):
        return Dispatcher.mock_credentials(channel)


class NotificationServiceTestMixin:
    def make_settings(self, **overrides):
        return TenantNotificationSettings.objects.create(tenant_id=TENANT_ID, **overrides)

    def make_service(self, timeout=2.0, **adapters):
        self.adapters = {
            channel: ScriptedAdapter(channel, [True]) for channel in ('email', 'sms', 'whatsapp')
        }
        self.adapters.update(adapters)
        return NotificationService(dispatcher=ScriptedDispatcher(**self.adapters), timeout=timeout)

    def deliver(self, service, notification_type='confirmation', recipient=BOTH, booking_id=42,
                template_data=TEMPLATE_DATA, audience='customer'):
        return async_to_sync(service.deliver)(
            TENANT_ID, notification_type, recipient,
            booking_id=booking_id, template_data=template_data, audience=audience,
        )

    def event_pairs(self):
        return set(NotificationEvent.objects.values_list('channel', 'status'))


class CandidateChannelTest(NotificationServiceTestMixin, TestCase):
    def setUp(self):
        self.service = NotificationService()

    def test_default_order_when_fallback_order_empty(self):
        settings = self.make_settings(email_enabled=True, sms_enabled=True, whatsapp_enabled=True)
        self.assertEqual(self.service.get_candidate_channels(settings, BOTH), ['email', 'sms', 'whatsapp'])

    def test_explicit_order_is_respected(self):
        settings = self.make_settings(sms_enabled=True, whatsapp_enabled=True, fallback_order=['whatsapp', 'sms', 'email'])
        self.assertEqual(self.service.get_candidate_channels(settings, BOTH), ['whatsapp', 'sms', 'email'])

    def test_disabled_channel_is_excluded_even_if_listed(self):
        settings = self.make_settings(whatsapp_enabled=False, fallback_order=['whatsapp', 'email'])
        self.assertEqual(self.service.get_candidate_channels(settings, BOTH), ['email'])

    def test_channel_without_recipient_address_is_excluded(self):
        settings = self.make_settings(sms_enabled=True, whatsapp_enabled=True)
        self.assertEqual(self.service.get_candidate_channels(settings, {"email": "a@b.com"}), ['email'])
        self.assertEqual(self.service.get_candidate_channels(settings, {"phone": "+1555"}), ['sms', 'whatsapp'])

    def test_staff_toggles_are_independent(self):
        settings = self.make_settings(email_enabled=True, sms_enabled=False,
                                      staff_email_enabled=False, staff_sms_enabled=True)
        self.assertEqual(self.service.get_candidate_channels(settings, BOTH, 'customer'), ['email'])
        self.assertEqual(self.service.get_candidate_channels(settings, BOTH, 'staff'), ['sms'])


class FallbackDeliveryTest(NotificationServiceTestMixin, TestCase):
    """Ordered fallback with first-success-wins"""

    def test_failed_channel_falls_back_to_next(self):
        self.make_settings(email_enabled=True, sms_enabled=True, fallback_order=['sms', 'email'])
        service = self.make_service(sms=ScriptedAdapter('sms', [False]))

        results = self.deliver(service)

        self.assertEqual([(r.channel, r.success) for r in results], [('sms', False), ('email', True)])
        self.assertEqual(NotificationEvent.objects.count(), 2)
        self.assertEqual(self.event_pairs(), {('sms', 'failed'), ('email', 'sent')})
        self.assertEqual(len(self.adapters['whatsapp'].calls), 0)

        failed = NotificationEvent.objects.get(channel='sms')
        self.assertIsNone(failed.sent_at)
        self.assertEqual(failed.error_message, 'sms provider down')
        sent = NotificationEvent.objects.get(channel='email')
        self.assertIsNotNone(sent.sent_at)
        self.assertEqual(sent.external_id, 'email-1')
        self.assertEqual(sent.booking_id, 42)

    def test_first_success_stops_iteration(self):
        self.make_settings(email_enabled=True, sms_enabled=True, whatsapp_enabled=True)
        service = self.make_service()

        self.deliver(service)

        self.assertEqual(len(self.adapters['email'].calls), 1)
        self.assertEqual(len(self.adapters['sms'].calls), 0)
        self.assertEqual(len(self.adapters['whatsapp'].calls), 0)
        self.assertEqual(NotificationEvent.objects.count(), 1)

    def test_all_channels_failing_drops_notification(self):
        self.make_settings(email_enabled=True, sms_enabled=True, whatsapp_enabled=True)
        service = self.make_service(
            email=ScriptedAdapter('email', [False]),
            sms=ScriptedAdapter('sms', [False]),
            whatsapp=ScriptedAdapter('whatsapp', [False]),
        )

        results = self.deliver(service)

        self.assertEqual(len(results), 3)
        self.assertFalse(any(r.success for r in results))
        self.assertEqual(NotificationEvent.objects.filter(status='failed').count(), 3)

    def test_adapter_exception_is_treated_as_failure(self):
        self.make_settings(email_enabled=True, sms_enabled=True)
        service = self.make_service(email=ScriptedAdapter('email', [RuntimeError("SDK exploded")]))

        results = self.deliver(service)

        self.assertEqual([(r.channel, r.success) for r in results], [('email', False), ('sms', True)])
        self.assertEqual(NotificationEvent.objects.get(channel='email').error_message, 'SDK exploded')

    def test_adapter_timeout_is_treated_as_failure(self):
        self.make_settings(email_enabled=True, sms_enabled=True)
        service = self.make_service(timeout=0.1, email=ScriptedAdapter('email', ['hang']))

        results = self.deliver(service)

        self.assertFalse(results[0].success)
        self.assertTrue(results[0].error.startswith('timeout'))
        self.assertTrue(results[1].success)
        self.assertEqual(self.event_pairs(), {('email', 'failed'), ('sms', 'sent')})

    def test_staff_delivery_uses_staff_templates_and_audience(self):
        self.make_settings(email_enabled=False, staff_email_enabled=True)
        service = self.make_service()

        self.deliver(service, recipient={"email": "maya@zen.spa"}, audience='staff')

        event = NotificationEvent.objects.get()
        self.assertEqual(event.audience, 'staff')
        self.assertEqual(self.adapters['email'].calls[0].subject, 'New Booking: Ann on Monday, January 5, 2026')


class DeliverySkipTest(NotificationServiceTestMixin, TestCase):
    def test_tenant_without_settings_gets_nothing(self):
        service = self.make_service()

        self.assertEqual(self.deliver(service), [])
        self.assertEqual(NotificationEvent.objects.count(), 0)

    def test_disabled_notification_type_writes_nothing(self):
        self.make_settings(email_enabled=True, send_confirmation=False)
        service = NotificationService()

        results = self.deliver(service, recipient={"email": "a@b.com"})

        self.assertEqual(results, [])
        self.assertEqual(NotificationEvent.objects.count(), 0)
        self.assertEqual(NotificationUsage.objects.count(), 0)

    def test_no_eligible_channel(self):
        self.make_settings(email_enabled=True, sms_enabled=False)
        service = self.make_service()

        self.assertEqual(self.deliver(service, recipient={"phone": "+971501234567"}), [])
        self.assertEqual(NotificationEvent.objects.count(), 0)


class EndToEndMockModeTest(NotificationServiceTestMixin, TestCase):
    """Real dispatcher and adapters with no stored credentials"""

    def test_confirmation_through_fire_and_forget_entry_point(self):
        self.make_settings(email_enabled=True, sms_enabled=False, send_confirmation=True)

        get_notification_service().send_notification(
            TENANT_ID, "confirmation", {"email": "a@b.com"}, 42, {"customerName": "Ann", "spaName": "Zen"}
        )

        event = NotificationEvent.objects.get()
        self.assertEqual(event.channel, 'email')
        self.assertEqual(event.notification_type, 'confirmation')
        self.assertEqual(event.status, 'sent')
        self.assertEqual(event.provider, 'sendgrid')
        self.assertEqual(event.recipient_email, 'a@b.com')
        self.assertTrue(event.external_id.startswith('mock-'))

        usage = NotificationUsage.objects.get()
        self.assertEqual((usage.tenant_id.hex, usage.channel, usage.date), (event.tenant_id.hex, 'email', timezone.now().date()))
        self.assertEqual(usage.success_count, 1)
        self.assertEqual(usage.failure_count, 0)

    def test_disabled_type_through_entry_point(self):
        self.make_settings(email_enabled=True, send_confirmation=False)

        get_notification_service().send_notification(TENANT_ID, "confirmation", {"email": "a@b.com"}, 42, TEMPLATE_DATA)

        self.assertEqual(NotificationEvent.objects.count(), 0)
        self.assertEqual(NotificationUsage.objects.count(), 0)

    def test_staff_entry_point(self):
        self.make_settings(staff_sms_enabled=True, staff_email_enabled=False)

        get_notification_service().send_staff_notification(TENANT_ID, "cancellation", {"phone": "+971501234567"}, 7, TEMPLATE_DATA)

        event = NotificationEvent.objects.get()
        self.assertEqual((event.channel, event.audience, event.status), ('sms', 'staff', 'sent'))
        self.assertTrue(event.external_id.startswith('mock-sms-'))

    def test_undecryptable_credentials_fall_through(self):
        self.make_settings(email_enabled=True, sms_enabled=True)
        TenantChannelCredential.objects.create(
            tenant_id=TENANT_ID, channel='email', provider='resend', encrypted_credentials='tampered-blob',
        )

        results = async_to_sync(NotificationService().deliver)(TENANT_ID, 'confirmation', BOTH, 1, TEMPLATE_DATA)

        self.assertEqual([(r.channel, r.provider, r.success) for r in results],
                         [('email', 'resend', False), ('sms', 'twilio', True)])
        self.assertEqual(self.event_pairs(), {('email', 'failed'), ('sms', 'sent')})

    def test_stored_credentials_are_used(self):
        self.make_settings(email_enabled=True)
        TenantChannelCredential.objects.create(
            tenant_id=TENANT_ID, channel='email', provider='resend', from_email='hello@zen.spa',
            encrypted_credentials=encrypt_json({"api_key": "mock"}),
        )

        results = async_to_sync(NotificationService().deliver)(TENANT_ID, 'confirmation', BOTH, 1, TEMPLATE_DATA)

        self.assertEqual((results[0].provider, results[0].success), ('resend', True))

    def test_enqueue_failure_never_reaches_caller(self):
        with patch.object(deliver_notification_task, 'delay', side_effect=ConnectionError("broker down")):
            get_notification_service().send_notification(TENANT_ID, "confirmation", {"email": "a@b.com"})

        self.assertEqual(NotificationEvent.objects.count(), 0)


class UsageAccountingTest(NotificationServiceTestMixin, TestCase):
    def test_counter_matches_outcomes(self):
        self.make_settings(email_enabled=True)
        outcomes = [True, False, True, False, True]
        service = self.make_service(email=ScriptedAdapter('email', outcomes))

        for _ in outcomes:
            self.deliver(service, recipient={"email": "a@b.com"})

        usage = NotificationUsage.objects.get(channel='email')
        self.assertEqual(usage.success_count, 3)
        self.assertEqual(usage.failure_count, 2)
        self.assertEqual(NotificationEvent.objects.count(), 5)

    def test_creation_race_falls_back_to_increment(self):
        tracker = UsageTracker()
        NotificationUsage.objects.create(
            tenant_id=TENANT_ID, channel='sms', date=timezone.now().date(), success_count=1
        )
        real_increment = tracker._increment
        calls = []

        def lose_first_update(*args):
            calls.append(args)
            return 0 if len(calls) == 1 else real_increment(*args)

        with patch.object(tracker, '_increment', side_effect=lose_first_update):
            tracker.track_usage(TENANT_ID, 'sms', success=True, cost=Decimal('0.01'))

        usage = NotificationUsage.objects.get()
        self.assertEqual(usage.success_count, 2)
        self.assertEqual(usage.estimated_cost, Decimal('0.0100'))
        self.assertEqual(len(calls), 2)


class CredentialRepositoryTest(TestCase):
    def test_resolve_merges_row_fields(self):
        credential = TenantChannelCredential.objects.create(
            tenant_id=TENANT_ID, channel='sms', provider='msg91', from_phone='+971400000000',
            encrypted_credentials=encrypt_json({"auth_key": "k1"}),
        )

        resolved = CredentialRepository().resolve(credential)

        self.assertEqual(resolved, {"auth_key": "k1", "provider": "msg91", "from_phone": "+971400000000"})

    def test_save_credentials_resurrects_soft_deleted_row(self):
        repository = CredentialRepository()
        credential, created, _ = repository.save_credentials(TENANT_ID, 'email', 'sendgrid', {"api_key": "mock"})
        self.assertTrue(created)
        credential.soft_delete()

        again, created, result = repository.save_credentials(TENANT_ID, 'email', 'resend', {"api_key": "mock"})

        self.assertFalse(created)
        self.assertEqual(again.pk, credential.pk)
        self.assertEqual(again.provider, 'resend')
        self.assertEqual(result.details, {'mode': 'mock'})
        self.assertEqual(TenantChannelCredential.objects.count(), 1)


class DeliverTaskTest(TestCase):
    def test_task_returns_results(self):
        TenantNotificationSettings.objects.create(tenant_id=TENANT_ID)

        results = deliver_notification_task(TENANT_ID, 'confirmation', {"email": "a@b.com"}, 1, TEMPLATE_DATA)

        self.assertEqual(len(results), 1)
        self.assertTrue(results[0]['success'])
        self.assertEqual(results[0]['channel'], 'email')

    @patch('booking_notifications.get_notification_service')
    def test_task_swallows_crashes(self, mock_get_service):
        mock_get_service.side_effect = RuntimeError("registry not ready")

        self.assertEqual(deliver_notification_task(TENANT_ID, 'confirmation', {"email": "a@b.com"}), [])
