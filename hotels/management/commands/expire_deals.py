"""Clear last-minute deals whose validity window has closed."""

from django.core.management.base import BaseCommand

from hotels.services import expire_stale_deals


class Command(BaseCommand):
    help = 'Deactivate last-minute deals that have passed their end time'

    def handle(self, *args, **options):
        expired = expire_stale_deals()
        self.stdout.write(self.style.SUCCESS(f'Expired {expired} deal(s).'))
