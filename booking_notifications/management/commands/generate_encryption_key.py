from django.core.management.base import BaseCommand

from booking_notifications.utils.encryption import generate_encryption_key


class Command(BaseCommand):
    help = 'Print a new random master key for the ENCRYPTION_KEY setting'

    def handle(self, *args, **options):
        self.stdout.write(generate_encryption_key())
