from typing import Optional, Tuple
from django.db import transaction
from django.utils import timezone
import logging

from booking_notifications.models import (
    TenantNotificationSettings, TenantChannelCredential, HealthStatus,
)
from booking_notifications.orchestrator.validator import ValidationResult, validate_provider_credentials
from booking_notifications.utils.encryption import encrypt_json, decrypt_json
from booking_notifications.utils.exceptions import CredentialValidationError

logger = logging.getLogger('booking_notifications.orchestrator')


class SettingsRepository:
    def get_notification_settings(self, tenant_id) -> Optional[TenantNotificationSettings]:
        return TenantNotificationSettings.objects.filter(tenant_id=tenant_id).first()


class CredentialRepository:
    """Reads and writes encrypted per-tenant channel credentials"""

    def get_credentials_by_channel(self, tenant_id, channel: str) -> Optional[TenantChannelCredential]:
        return TenantChannelCredential.objects.filter(
            tenant_id=tenant_id,
            channel=channel,
            is_active=True,
        ).first()

    def resolve(self, credential: TenantChannelCredential) -> dict:
        """Decrypt the stored blob and merge in the row's provider and sender identity.

        Raises DecryptionError when the blob cannot be decrypted.
        """
        credentials = decrypt_json(credential.encrypted_credentials)
        credentials['provider'] = credential.provider or credentials.get('provider')
        if credential.from_email:
            credentials['from_email'] = credential.from_email
        if credential.from_phone:
            credentials['from_phone'] = credential.from_phone
        return credentials

    def save_credentials(self, tenant_id, channel: str, provider: str, secrets: dict,
                         from_email=None, from_phone=None,
                         validate: bool = True) -> Tuple[TenantChannelCredential, bool, ValidationResult]:
        """
        Validate, encrypt and upsert the credentials for one (tenant, channel).

        Invalid credentials raise CredentialValidationError and nothing is
        written. A soft-deleted row for the same channel is brought back.
        """
        if validate:
            result = validate_provider_credentials(channel, provider, secrets)
            if not result.valid:
                logger.warning(f"Rejected {channel}/{provider} credentials for tenant {tenant_id}: {result.error}")
                raise CredentialValidationError(result.error or 'Invalid credentials', result.details)
        else:
            result = ValidationResult(True, details={'validation': 'skipped'})

        live = validate and result.details.get('mode') != 'mock'
        fields = {
            'provider': provider,
            'encrypted_credentials': encrypt_json({**secrets, 'provider': provider}),
            'from_email': from_email,
            'from_phone': from_phone,
            'is_active': True,
            'is_deleted': False,
            'deleted_at': None,
            'health_status': HealthStatus.HEALTHY.value if live else HealthStatus.UNKNOWN.value,
            'last_tested_at': timezone.now() if live else None,
            'last_error': '',
        }

        with transaction.atomic():
            existing = TenantChannelCredential.objects.all_with_deleted().select_for_update().filter(
                tenant_id=tenant_id, channel=channel
            ).first()
            if existing:
                for name, value in fields.items():
                    setattr(existing, name, value)
                existing.save()
                credential, created = existing, False
            else:
                credential = TenantChannelCredential.objects.create(tenant_id=tenant_id, channel=channel, **fields)
                created = True

        logger.info(f"{'Created' if created else 'Updated'} {channel}/{provider} credentials for tenant {tenant_id}")
        return credential, created, result

    def record_health(self, credential: TenantChannelCredential, result: ValidationResult) -> TenantChannelCredential:
        credential.health_status = HealthStatus.HEALTHY.value if result.valid else HealthStatus.FAILING.value
        credential.last_tested_at = timezone.now()
        credential.last_error = '' if result.valid else (result.error or '')
        credential.save(update_fields=['health_status', 'last_tested_at', 'last_error', 'updated_at'])
        return credential
