"""Delete price locks that lapsed long ago."""

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand

from pricing.services import purge_expired_locks


class Command(BaseCommand):
    help = 'Hard-delete price locks that expired more than the grace period ago'

    def add_arguments(self, parser):
        parser.add_argument(
            '--grace-hours',
            type=int,
            default=settings.PRICE_LOCK_PURGE_GRACE_HOURS,
            help='Only purge locks that expired at least this many hours ago',
        )

    def handle(self, *args, **options):
        deleted = purge_expired_locks(grace=timedelta(hours=options['grace_hours']))
        self.stdout.write(self.style.SUCCESS(f'Purged {deleted} expired price lock(s).'))
