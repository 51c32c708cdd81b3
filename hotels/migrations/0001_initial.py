import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Hotel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255)),
                ('slug', models.SlugField(blank=True, unique=True)),
                ('description', models.TextField(blank=True)),
                ('location', models.CharField(max_length=255)),
                ('address', models.CharField(blank=True, max_length=255)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('is_active', models.BooleanField(default=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='hotels', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Room',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('room_type', models.CharField(choices=[('STANDARD', 'Standard'), ('DELUXE', 'Deluxe'), ('SUITE', 'Suite'), ('PREMIUM', 'Premium'), ('PENTHOUSE', 'Penthouse'), ('FAMILY', 'Family')], max_length=20)),
                ('room_name', models.CharField(max_length=255)),
                ('room_number', models.CharField(blank=True, max_length=20)),
                ('max_occupancy', models.PositiveIntegerField(default=2, validators=[django.core.validators.MinValueValidator(1)])),
                ('base_price', models.PositiveBigIntegerField()),
                ('weekend_surcharge', models.PositiveBigIntegerField(default=0)),
                ('total_rooms', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('available_rooms', models.PositiveIntegerField()),
                ('room_status', models.CharField(choices=[('AVAILABLE', 'Available'), ('BOOKED', 'Booked'), ('MAINTENANCE', 'Maintenance'), ('INACTIVE', 'Inactive')], default='AVAILABLE', max_length=20)),
                ('deal_active', models.BooleanField(default=False)),
                ('deal_discount_percent', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(99)])),
                ('deal_original_price', models.PositiveBigIntegerField(blank=True, null=True)),
                ('deal_price', models.PositiveBigIntegerField(blank=True, null=True)),
                ('deal_valid_until', models.DateTimeField(blank=True, null=True)),
                ('hotel', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='rooms', to='hotels.hotel')),
            ],
            options={
                'ordering': ['hotel__name', 'room_name'],
                'indexes': [
                    models.Index(fields=['room_status'], name='room_status_idx'),
                    models.Index(fields=['deal_active', 'deal_valid_until'], name='room_deal_window_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('total_rooms__gte', 1)), name='room_total_rooms_positive'),
                    models.CheckConstraint(condition=models.Q(('available_rooms__gte', 0), ('available_rooms__lte', models.F('total_rooms'))), name='room_available_within_total'),
                ],
            },
        ),
    ]
