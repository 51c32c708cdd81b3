"""Confirm pending bookings whose payment has been recorded as paid."""

from django.core.management.base import BaseCommand

from bookings.services import confirm_paid_bookings


class Command(BaseCommand):
    help = 'Move PENDING bookings with a PAID payment status to CONFIRMED'

    def handle(self, *args, **options):
        confirmed = confirm_paid_bookings()
        if confirmed:
            self.stdout.write(self.style.SUCCESS(f'Confirmed {confirmed} paid booking(s).'))
        else:
            self.stdout.write('No paid bookings awaiting confirmation.')
