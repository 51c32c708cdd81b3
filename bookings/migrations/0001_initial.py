import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('hotels', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking_code', models.CharField(editable=False, max_length=24, unique=True)),
                ('check_in_date', models.DateField()),
                ('check_out_date', models.DateField()),
                ('nights', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('adult_count', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('child_count', models.PositiveIntegerField(default=0)),
                ('subtotal', models.PositiveBigIntegerField()),
                ('weekend_surcharge', models.PositiveBigIntegerField(default=0)),
                ('early_check_in_fee', models.PositiveBigIntegerField(default=0)),
                ('late_check_out_fee', models.PositiveBigIntegerField(default=0)),
                ('taxes', models.PositiveBigIntegerField(default=0)),
                ('service_fee', models.PositiveBigIntegerField(default=0)),
                ('discount', models.PositiveBigIntegerField(default=0)),
                ('total_price', models.BigIntegerField()),
                ('payment_method', models.CharField(choices=[('DEBIT_CARD', 'Debit card'), ('CREDIT_CARD', 'Credit card'), ('KAKAOPAY', 'KakaoPay'), ('TOSS', 'Toss'), ('NAVERPAY', 'NaverPay'), ('AT_HOTEL', 'Pay at hotel')], default='AT_HOTEL', max_length=20)),
                ('payment_status', models.CharField(choices=[('PENDING', 'Pending'), ('PAID', 'Paid'), ('PARTIAL', 'Partial'), ('REFUNDED', 'Refunded'), ('FAILED', 'Failed')], default='PENDING', max_length=20)),
                ('paid_amount', models.PositiveBigIntegerField(default=0)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('booking_status', models.CharField(choices=[('PENDING', 'Pending'), ('CONFIRMED', 'Confirmed'), ('CHECKED_IN', 'Checked In'), ('CHECKED_OUT', 'Checked Out'), ('CANCELLED', 'Cancelled'), ('NO_SHOW', 'No Show')], default='PENDING', max_length=20)),
                ('special_requests', models.TextField(blank=True)),
                ('early_check_in', models.BooleanField(default=False)),
                ('late_check_out', models.BooleanField(default=False)),
                ('cancellation_date', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('refund_amount', models.PositiveBigIntegerField(blank=True, null=True)),
                ('refund_date', models.DateTimeField(blank=True, null=True)),
                ('guest', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to=settings.AUTH_USER_MODEL)),
                ('hotel', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='hotels.hotel')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['guest', 'booking_status'], name='booking_guest_status_idx'),
                    models.Index(fields=['hotel', 'check_in_date'], name='booking_hotel_checkin_idx'),
                    models.Index(fields=['booking_status', 'created_at'], name='booking_status_created_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('check_out_date__gt', models.F('check_in_date'))), name='booking_check_out_after_check_in'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookingRoom',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('room_type', models.CharField(choices=[('STANDARD', 'Standard'), ('DELUXE', 'Deluxe'), ('SUITE', 'Suite'), ('PREMIUM', 'Premium'), ('PENTHOUSE', 'Penthouse'), ('FAMILY', 'Family')], max_length=20)),
                ('quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('price_per_night', models.PositiveBigIntegerField()),
                ('effective_price', models.PositiveBigIntegerField()),
                ('price_source', models.CharField(choices=[('LOCK', 'Price lock'), ('DEAL', 'Last-minute deal'), ('BASE', 'Base price')], default='BASE', max_length=10)),
                ('guest_name', models.CharField(blank=True, max_length=150)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rooms', to='bookings.booking')),
                ('room', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='booking_lines', to='hotels.room')),
            ],
            options={
                'ordering': ['id'],
                'constraints': [
                    models.UniqueConstraint(fields=('booking', 'room'), name='booking_room_unique_line'),
                    models.CheckConstraint(condition=models.Q(('quantity__gte', 1)), name='booking_room_quantity_positive'),
                ],
            },
        ),
    ]
