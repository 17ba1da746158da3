import uuid
from django.core.management.base import BaseCommand, CommandError

from booking_notifications.models import ChannelType, ProviderType
from booking_notifications.orchestrator.dispatcher import Dispatcher, DEFAULT_PROVIDERS
from booking_notifications.orchestrator.repositories import CredentialRepository
from booking_notifications.utils.exceptions import CredentialValidationError


class Command(BaseCommand):
    help = 'Encrypt and store delivery credentials for one tenant channel'

    def add_arguments(self, parser):
        parser.add_argument(
            'tenant_id',
            type=str,
            help='UUID of the tenant'
        )
        parser.add_argument(
            '--channel',
            required=True,
            choices=[tag.value for tag in ChannelType],
            help='Channel the credentials are for'
        )
        parser.add_argument(
            '--provider',
            choices=[tag.value for tag in ProviderType],
            help='Provider (defaults to sendgrid for email, twilio for sms/whatsapp)'
        )
        parser.add_argument('--api-key', help='SendGrid or Resend API key')
        parser.add_argument('--account-sid', help='Twilio account SID')
        parser.add_argument('--auth-token', help='Twilio auth token')
        parser.add_argument('--auth-key', help='MSG91 auth key')
        parser.add_argument('--sender-id', help='MSG91 SMS sender id')
        parser.add_argument('--smtp-host', help='SMTP host')
        parser.add_argument('--smtp-port', type=int, default=587, help='SMTP port')
        parser.add_argument('--smtp-username', help='SMTP username')
        parser.add_argument('--smtp-password', help='SMTP password')
        parser.add_argument('--smtp-use-ssl', action='store_true', help='Use implicit SSL instead of STARTTLS')
        parser.add_argument('--from-email', help='Sender email address')
        parser.add_argument('--from-phone', help='Sender phone number (E.164)')
        parser.add_argument(
            '--skip-validation',
            action='store_true',
            help='Store without checking the credentials against the provider'
        )

    def handle(self, *args, **options):
        tenant_id = options['tenant_id']
        try:
            uuid.UUID(tenant_id)
        except ValueError:
            raise CommandError(f'Invalid tenant_id format: {tenant_id}')

        channel = options['channel']
        provider = options['provider'] or DEFAULT_PROVIDERS[channel]
        if (channel, provider) not in Dispatcher.handlers:
            raise CommandError(f'{provider} cannot deliver {channel} messages')

        secrets = self._collect_secrets(provider, options)
        if not secrets:
            raise CommandError(f'No credentials given for {provider}')

        try:
            credential, created, result = CredentialRepository().save_credentials(
                tenant_id,
                channel,
                provider,
                secrets,
                from_email=options['from_email'],
                from_phone=options['from_phone'],
                validate=not options['skip_validation'],
            )
        except CredentialValidationError as e:
            raise CommandError(f'{provider} rejected the credentials: {e}')

        action = 'Created' if created else 'Updated'
        self.stdout.write(
            self.style.SUCCESS(f'{action} {channel}/{provider} credentials for tenant {tenant_id}')
        )
        if result.details.get('mode') == 'mock':
            self.stdout.write(self.style.WARNING(f'{channel} will run in development (mock) mode'))

    def _collect_secrets(self, provider: str, options: dict) -> dict:
        if provider in (ProviderType.SENDGRID.value, ProviderType.RESEND.value):
            secrets = {'api_key': options['api_key']}
        elif provider == ProviderType.TWILIO.value:
            secrets = {'account_sid': options['account_sid'], 'auth_token': options['auth_token']}
        elif provider == ProviderType.MSG91.value:
            secrets = {'auth_key': options['auth_key'], 'sender_id': options['sender_id']}
        else:
            secrets = {
                'smtp_host': options['smtp_host'],
                'smtp_port': options['smtp_port'],
                'username': options['smtp_username'],
                'password': options['smtp_password'],
                'use_ssl': options['smtp_use_ssl'],
                'use_tls': not options['smtp_use_ssl'],
            }
        return {key: value for key, value in secrets.items() if value not in (None, '')}
