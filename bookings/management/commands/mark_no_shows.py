"""Mark confirmed bookings whose check-in date has passed as no-shows."""

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from bookings.services import mark_no_shows


class Command(BaseCommand):
    help = 'Mark CONFIRMED bookings with a past check-in date as NO_SHOW and restore their rooms'

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

        marked = mark_no_shows(today=today)
        if marked:
            self.stdout.write(self.style.WARNING(f'Marked {marked} booking(s) as NO_SHOW.'))
        else:
            self.stdout.write(self.style.SUCCESS('No missed check-ins found.'))
