"""Hotel and room inventory models."""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.text import slugify

from core.models import TimeStampedModel


class Hotel(TimeStampedModel):
	owner = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='hotels', on_delete=models.PROTECT)
	name = models.CharField(max_length=255)
	slug = models.SlugField(unique=True, blank=True)
	description = models.TextField(blank=True)
	location = models.CharField(max_length=255)
	address = models.CharField(max_length=255, blank=True)
	contact_email = models.EmailField(blank=True)
	is_active = models.BooleanField(default=True)

	class Meta:
		ordering = ['name']

	def save(self, *args, **kwargs):  # pragma: no cover - slug generation is deterministic
		if not self.slug:
			self.slug = slugify(self.name)
		super().save(*args, **kwargs)

	def __str__(self):  # pragma: no cover - human readable
		return self.name


class RoomType(models.TextChoices):
	STANDARD = 'STANDARD', 'Standard'
	DELUXE = 'DELUXE', 'Deluxe'
	SUITE = 'SUITE', 'Suite'
	PREMIUM = 'PREMIUM', 'Premium'
	PENTHOUSE = 'PENTHOUSE', 'Penthouse'
	FAMILY = 'FAMILY', 'Family'


class RoomStatus(models.TextChoices):
	AVAILABLE = 'AVAILABLE', 'Available'
	BOOKED = 'BOOKED', 'Booked'
	MAINTENANCE = 'MAINTENANCE', 'Maintenance'
	INACTIVE = 'INACTIVE', 'Inactive'


class Room(TimeStampedModel):
	"""A sellable room type. Prices are integers in the minor currency unit."""

	hotel = models.ForeignKey(Hotel, related_name='rooms', on_delete=models.PROTECT)
	room_type = models.CharField(max_length=20, choices=RoomType.choices)
	room_name = models.CharField(max_length=255)
	room_number = models.CharField(max_length=20, blank=True)
	max_occupancy = models.PositiveIntegerField(default=2, validators=[MinValueValidator(1)])
	base_price = models.PositiveBigIntegerField()
	weekend_surcharge = models.PositiveBigIntegerField(default=0)
	total_rooms = models.PositiveIntegerField(validators=[MinValueValidator(1)])
	available_rooms = models.PositiveIntegerField()
	room_status = models.CharField(max_length=20, choices=RoomStatus.choices, default=RoomStatus.AVAILABLE)

	deal_active = models.BooleanField(default=False)
	deal_discount_percent = models.PositiveSmallIntegerField(
		null=True,
		blank=True,
		validators=[MinValueValidator(1), MaxValueValidator(99)],
	)
	deal_original_price = models.PositiveBigIntegerField(null=True, blank=True)
	deal_price = models.PositiveBigIntegerField(null=True, blank=True)
	deal_valid_until = models.DateTimeField(null=True, blank=True)

	class Meta:
		ordering = ['hotel__name', 'room_name']
		constraints = [
			models.CheckConstraint(
				condition=Q(total_rooms__gte=1),
				name='room_total_rooms_positive',
			),
			models.CheckConstraint(
				condition=Q(available_rooms__gte=0) & Q(available_rooms__lte=F('total_rooms')),
				name='room_available_within_total',
			),
		]
		indexes = [
			models.Index(fields=['room_status'], name='room_status_idx'),
			models.Index(fields=['deal_active', 'deal_valid_until'], name='room_deal_window_idx'),
		]

	def save(self, *args, **kwargs):
		if self._state.adding and self.available_rooms is None:
			self.available_rooms = self.total_rooms
		super().save(*args, **kwargs)

	def clean(self):
		if self.available_rooms is not None and self.total_rooms is not None:
			if self.available_rooms > self.total_rooms:
				raise ValidationError({'available_rooms': 'Available rooms cannot exceed total rooms.'})

	@property
	def is_sellable(self) -> bool:
		return self.room_status == RoomStatus.AVAILABLE and self.hotel.is_active

	def has_active_deal(self, now: datetime | None = None) -> bool:
		now = now or timezone.now()
		return bool(
			self.deal_active
			and self.deal_price is not None
			and self.deal_valid_until is not None
			and self.deal_valid_until > now
		)

	def __str__(self):  # pragma: no cover - human readable
		return f"{self.hotel.name} - {self.room_name}"
