"""Email guests who check in today."""

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from bookings.services import send_checkin_reminders


class Command(BaseCommand):
    help = 'Send check-in reminders for CONFIRMED bookings starting today'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            dest='today',
            type=str,
            help='Treat this ISO date (YYYY-MM-DD) as today',
        )

    def handle(self, *args, **options):
        today = None
        if options['today']:
            try:
                today = date.fromisoformat(options['today'])
            except ValueError as exc:
                raise CommandError(f"Invalid date: {options['today']}") from exc

        sent = send_checkin_reminders(today=today)
        self.stdout.write(self.style.SUCCESS(f'Sent {sent} check-in reminder(s).'))
