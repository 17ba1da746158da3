from asgiref.sync import async_to_sync
from rest_framework import generics, status
from rest_framework.exceptions import ValidationError
from rest_framework.filters import SearchFilter
from rest_framework.pagination import PageNumberPagination
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend
from django.db.models import Count, Sum, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from datetime import timedelta
import logging

from booking_notifications import get_notification_service
from booking_notifications.models import (
    TenantNotificationSettings, TenantChannelCredential, NotificationEvent, NotificationUsage,
    EventStatus,
)
from booking_notifications.orchestrator.logger import EventLog
from booking_notifications.orchestrator.repositories import CredentialRepository
from booking_notifications.orchestrator.validator import ValidationResult, validate_provider_credentials
from booking_notifications.serializers import (
    TenantNotificationSettingsSerializer, TenantChannelCredentialSerializer, CredentialWriteSerializer,
    NotificationEventSerializer, NotificationUsageSerializer, TestSendSerializer,
)
from booking_notifications.utils.context import require_tenant_id
from booking_notifications.utils.exceptions import CredentialValidationError, DecryptionError

logger = logging.getLogger('booking_notifications.api')

SUCCESS_STATUSES = [EventStatus.SENT.value, EventStatus.DELIVERED.value]
FAILURE_STATUSES = [EventStatus.FAILED.value, EventStatus.UNDELIVERED.value]

# Provider delivery statuses that change a logged attempt
TWILIO_STATUS_MAP = {
    'delivered': EventStatus.DELIVERED.value,
    'read': EventStatus.DELIVERED.value,
    'undelivered': EventStatus.UNDELIVERED.value,
    'failed': EventStatus.FAILED.value,
}
MSG91_STATUS_MAP = {
    '1': EventStatus.DELIVERED.value,
    'delivered': EventStatus.DELIVERED.value,
    '2': EventStatus.FAILED.value,
    'failed': EventStatus.FAILED.value,
    '9': EventStatus.UNDELIVERED.value,
    '16': EventStatus.UNDELIVERED.value,
    '17': EventStatus.UNDELIVERED.value,
    '25': EventStatus.UNDELIVERED.value,
    '26': EventStatus.UNDELIVERED.value,
    'rejected': EventStatus.UNDELIVERED.value,
    'ndnc': EventStatus.UNDELIVERED.value,
    'undelivered': EventStatus.UNDELIVERED.value,
}


class HealthView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({"status": "healthy", "service": "booking_notifications"})


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


class TenantNotificationSettingsView(APIView):
    """Read or upsert the calling tenant's notification settings"""

    def get(self, request):
        tenant_id = require_tenant_id(request)
        instance = get_object_or_404(TenantNotificationSettings, tenant_id=tenant_id)
        return Response(TenantNotificationSettingsSerializer(instance).data)

    def put(self, request):
        return self._upsert(request, partial=False)

    def patch(self, request):
        return self._upsert(request, partial=True)

    def _upsert(self, request, partial):
        tenant_id = require_tenant_id(request)
        instance = TenantNotificationSettings.objects.filter(tenant_id=tenant_id).first()
        serializer = TenantNotificationSettingsSerializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        saved = serializer.save(tenant_id=tenant_id)
        logger.info(f"Notification settings {'updated' if instance else 'created'} for tenant {tenant_id}")
        return Response(
            TenantNotificationSettingsSerializer(saved).data,
            status=status.HTTP_200_OK if instance else status.HTTP_201_CREATED,
        )


class TenantChannelCredentialListCreateView(generics.ListCreateAPIView):
    serializer_class = TenantChannelCredentialSerializer
    pagination_class = StandardResultsSetPagination
    filterset_fields = ['channel', 'provider', 'health_status', 'is_active']

    def get_queryset(self):
        tenant_id = require_tenant_id(self.request)
        return TenantChannelCredential.objects.filter(tenant_id=tenant_id).order_by('channel')

    def create(self, request, *args, **kwargs):
        tenant_id = require_tenant_id(request)
        write = CredentialWriteSerializer(data=request.data)
        write.is_valid(raise_exception=True)
        data = write.validated_data

        try:
            credential, created, result = CredentialRepository().save_credentials(
                tenant_id,
                data['channel'],
                data['provider'],
                data['credentials'],
                from_email=data['from_email'],
                from_phone=data['from_phone'],
            )
        except CredentialValidationError as e:
            return Response(
                {'error': str(e), 'details': e.details},
                status=status.HTTP_400_BAD_REQUEST,
            )

        body = TenantChannelCredentialSerializer(credential).data
        body['validation'] = result.details
        return Response(body, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


class TenantChannelCredentialDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = TenantChannelCredentialSerializer
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        tenant_id = require_tenant_id(self.request)
        return TenantChannelCredential.objects.filter(tenant_id=tenant_id)

    def perform_destroy(self, instance):
        instance.soft_delete()
        logger.info(f"Soft-deleted {instance.channel} credentials for tenant {instance.tenant_id}")


class TenantChannelCredentialTestView(APIView):
    """Re-validate stored credentials against the provider and record the outcome"""

    def post(self, request, pk):
        tenant_id = require_tenant_id(request)
        credential = get_object_or_404(TenantChannelCredential, pk=pk, tenant_id=tenant_id)
        repository = CredentialRepository()

        try:
            secrets = repository.resolve(credential)
        except DecryptionError as e:
            result = ValidationResult(False, error=str(e))
        else:
            result = validate_provider_credentials(credential.channel, credential.provider, secrets)

        repository.record_health(credential, result)
        return Response({
            'valid': result.valid,
            'error': result.error,
            'details': result.details,
            'health_status': credential.health_status,
            'last_tested_at': credential.last_tested_at,
        })


class NotificationEventListView(generics.ListAPIView):
    serializer_class = NotificationEventSerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter]
    filterset_fields = ['channel', 'status', 'notification_type', 'audience', 'booking_id', 'provider']
    search_fields = ['recipient_email', 'recipient_phone', 'external_id']

    def get_queryset(self):
        tenant_id = require_tenant_id(self.request)
        return NotificationEvent.objects.filter(tenant_id=tenant_id)


class NotificationUsageListView(generics.ListAPIView):
    serializer_class = NotificationUsageSerializer
    pagination_class = StandardResultsSetPagination
    filterset_fields = ['channel']

    def get_queryset(self):
        tenant_id = require_tenant_id(self.request)
        queryset = NotificationUsage.objects.filter(tenant_id=tenant_id)
        for param, lookup in (('date_from', 'date__gte'), ('date_to', 'date__lte')):
            raw = self.request.query_params.get(param)
            if not raw:
                continue
            value = parse_date(raw)
            if value is None:
                raise ValidationError({param: 'Use YYYY-MM-DD.'})
            queryset = queryset.filter(**{lookup: value})
        return queryset


class AnalyticsView(APIView):
    def get(self, request):
        tenant_id = require_tenant_id(request)
        try:
            period_days = int(request.query_params.get('days', 30))
        except ValueError:
            raise ValidationError({'days': 'Must be an integer.'})
        if period_days < 1:
            raise ValidationError({'days': 'Must be at least 1.'})
        cutoff = timezone.now() - timedelta(days=period_days)

        events = NotificationEvent.objects.filter(tenant_id=tenant_id, created_at__gte=cutoff)
        totals = events.aggregate(
            total=Count('id'),
            succeeded=Count('id', filter=Q(status__in=SUCCESS_STATUSES)),
            failed=Count('id', filter=Q(status__in=FAILURE_STATUSES)),
            delivered=Count('id', filter=Q(status=EventStatus.DELIVERED.value)),
            estimated_cost=Sum('estimated_cost'),
        )

        data = {
            'period_days': period_days,
            'total_attempts': totals['total'],
            'total_sent': totals['succeeded'],
            'total_failed': totals['failed'],
            'total_delivered': totals['delivered'],
            'success_rate': round(totals['succeeded'] / totals['total'] * 100, 2) if totals['total'] else 0,
            'estimated_cost': str(totals['estimated_cost'] or 0),
            'channel_usage': {
                row['channel']: row['count']
                for row in events.values('channel').annotate(count=Count('id')).order_by()
            },
            'top_errors': list(
                events.filter(status__in=FAILURE_STATUSES)
                      .exclude(error_message__isnull=True).exclude(error_message='')
                      .values('error_message').annotate(count=Count('id')).order_by('-count')[:5]
            ),
        }
        return Response(data)


class TestSendView(APIView):
    """Send one message through a single channel and return the provider result"""

    def post(self, request):
        tenant_id = require_tenant_id(request)
        serializer = TestSendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        template_data = data.get('template_data')
        if template_data is None:
            template_data = {
                'customerName': 'Test Customer',
                'spaName': 'Test Spa',
                'bookingDate': timezone.now().date().isoformat(),
                'bookingTime': '10:00',
                'services': [{'name': 'Test Service', 'duration': 60, 'price': '100.00'}],
            }
        result = async_to_sync(get_notification_service().send_test_message)(
            tenant_id, data['channel'], data['to'], data['notification_type'], template_data
        )
        logger.info(f"Test {data['channel']} send for tenant {tenant_id}: success={result.success}")
        return Response(result.to_dict(), status=status.HTTP_200_OK if result.success else status.HTTP_502_BAD_GATEWAY)


class TwilioStatusWebhookView(APIView):
    """Twilio status callback (form encoded) for SMS and WhatsApp messages"""
    authentication_classes = []
    permission_classes = [AllowAny]
    parser_classes = [FormParser, MultiPartParser, JSONParser]

    def post(self, request):
        message_sid = request.data.get('MessageSid') or request.data.get('SmsSid')
        message_status = (request.data.get('MessageStatus') or request.data.get('SmsStatus') or '').lower()
        if not message_sid:
            raise ValidationError({'MessageSid': 'This field is required.'})

        new_status = TWILIO_STATUS_MAP.get(message_status)
        if new_status is None:
            return Response({'status': 'ignored', 'updated': 0})

        error_message = None
        if request.data.get('ErrorCode'):
            error_message = f"{request.data.get('ErrorCode')}: {request.data.get('ErrorMessage') or message_status}"
        updated = EventLog().update_status(
            message_sid,
            new_status,
            error_message=error_message,
            delivered_at=timezone.now() if new_status == EventStatus.DELIVERED.value else None,
        )
        return Response({'status': 'ok', 'updated': updated})


class Msg91StatusWebhookView(APIView):
    """MSG91 delivery report; accepts one report object or a list of them"""
    authentication_classes = []
    permission_classes = [AllowAny]
    parser_classes = [JSONParser, FormParser]

    def post(self, request):
        payload = request.data
        if isinstance(payload, dict) and isinstance(payload.get('data'), list):
            reports = payload['data']
        elif isinstance(payload, list):
            reports = payload
        else:
            reports = [payload]

        updated = 0
        event_log = EventLog()
        for report in reports:
            if not isinstance(report, dict):
                continue
            request_id = report.get('requestId') or report.get('request_id')
            new_status = MSG91_STATUS_MAP.get(str(report.get('status', '')).lower())
            if not request_id or new_status is None:
                continue
            failed = new_status != EventStatus.DELIVERED.value
            updated += event_log.update_status(
                str(request_id),
                new_status,
                error_message=report.get('description') if failed else None,
                delivered_at=None if failed else timezone.now(),
            )
        return Response({'status': 'ok', 'updated': updated})
