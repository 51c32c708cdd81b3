"""Management command to block, delete or reactivate members."""

from django.core.management.base import BaseCommand

from accounts.models import User


class Command(BaseCommand):
    help = 'Set the member status of one or more accounts by email address'

    def add_arguments(self, parser):
        parser.add_argument(
            'status',
            choices=User.MemberStatus.values,
            help='New member status',
        )
        parser.add_argument(
            'emails',
            nargs='+',
            type=str,
            help='Email addresses of the members to update',
        )

    def handle(self, *args, **options):
        status = options['status']
        updated_count = 0

        for email in options['emails']:
            try:
                user = User.objects.get(email__iexact=email)
            except User.DoesNotExist:
                self.stdout.write(self.style.ERROR(f'User not found: {email}'))
                continue

            if user.member_status == status:
                self.stdout.write(self.style.WARNING(f'{email} is already {status}'))
                continue

            user.member_status = status
            user.save(update_fields=['member_status'])
            updated_count += 1
            self.stdout.write(self.style.SUCCESS(f'{email} -> {status}'))

        self.stdout.write(self.style.SUCCESS(f'Updated {updated_count} member(s).'))
