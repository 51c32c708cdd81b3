"""Booking domain models."""

from __future__ import annotations

from django.conf import settings
from django.contrib.contenttypes.fields import GenericRelation
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q

from core.models import BookingCodeMixin, TimeStampedModel
from hotels.models import Hotel, Room, RoomType
from pricing.models import PriceSource


class Booking(TimeStampedModel, BookingCodeMixin):
	class BookingStatus(models.TextChoices):
		PENDING = 'PENDING', 'Pending'
		CONFIRMED = 'CONFIRMED', 'Confirmed'
		CHECKED_IN = 'CHECKED_IN', 'Checked In'
		CHECKED_OUT = 'CHECKED_OUT', 'Checked Out'
		CANCELLED = 'CANCELLED', 'Cancelled'
		NO_SHOW = 'NO_SHOW', 'No Show'

	class PaymentStatus(models.TextChoices):
		PENDING = 'PENDING', 'Pending'
		PAID = 'PAID', 'Paid'
		PARTIAL = 'PARTIAL', 'Partial'
		REFUNDED = 'REFUNDED', 'Refunded'
		FAILED = 'FAILED', 'Failed'

	class PaymentMethod(models.TextChoices):
		DEBIT_CARD = 'DEBIT_CARD', 'Debit card'
		CREDIT_CARD = 'CREDIT_CARD', 'Credit card'
		KAKAOPAY = 'KAKAOPAY', 'KakaoPay'
		TOSS = 'TOSS', 'Toss'
		NAVERPAY = 'NAVERPAY', 'NaverPay'
		AT_HOTEL = 'AT_HOTEL', 'Pay at hotel'

	ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
		BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
		BookingStatus.CONFIRMED: frozenset({
			BookingStatus.CHECKED_IN,
			BookingStatus.CANCELLED,
			BookingStatus.NO_SHOW,
		}),
		BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
		BookingStatus.CHECKED_OUT: frozenset(),
		BookingStatus.CANCELLED: frozenset(),
		BookingStatus.NO_SHOW: frozenset(),
	}
	CANCELLABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
	# Statuses whose entry hands the booked units back to the inventory ledger.
	RELEASING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW, BookingStatus.CHECKED_OUT})
	PAYMENT_LOCKED_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})

	guest = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='bookings', on_delete=models.PROTECT)
	hotel = models.ForeignKey(Hotel, related_name='bookings', on_delete=models.PROTECT)
	check_in_date = models.DateField()
	check_out_date = models.DateField()
	nights = models.PositiveIntegerField(validators=[MinValueValidator(1)])
	adult_count = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
	child_count = models.PositiveIntegerField(default=0)

	subtotal = models.PositiveBigIntegerField()
	weekend_surcharge = models.PositiveBigIntegerField(default=0)
	early_check_in_fee = models.PositiveBigIntegerField(default=0)
	late_check_out_fee = models.PositiveBigIntegerField(default=0)
	taxes = models.PositiveBigIntegerField(default=0)
	service_fee = models.PositiveBigIntegerField(default=0)
	discount = models.PositiveBigIntegerField(default=0)
	total_price = models.BigIntegerField()

	payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.AT_HOTEL)
	payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
	paid_amount = models.PositiveBigIntegerField(default=0)
	paid_at = models.DateTimeField(null=True, blank=True)

	booking_status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING)

	special_requests = models.TextField(blank=True)
	early_check_in = models.BooleanField(default=False)
	late_check_out = models.BooleanField(default=False)

	cancellation_date = models.DateTimeField(null=True, blank=True)
	cancellation_reason = models.TextField(blank=True)
	refund_amount = models.PositiveBigIntegerField(null=True, blank=True)
	refund_date = models.DateTimeField(null=True, blank=True)

	payments = GenericRelation('payments.Payment')

	class Meta:
		ordering = ['-created_at']
		constraints = [
			models.CheckConstraint(
				condition=Q(check_out_date__gt=F('check_in_date')),
				name='booking_check_out_after_check_in',
			),
		]
		indexes = [
			models.Index(fields=['guest', 'booking_status'], name='booking_guest_status_idx'),
			models.Index(fields=['hotel', 'check_in_date'], name='booking_hotel_checkin_idx'),
			models.Index(fields=['booking_status', 'created_at'], name='booking_status_created_idx'),
		]

	@classmethod
	def allowed_transitions(cls, status: str) -> frozenset[str]:
		return cls.ALLOWED_TRANSITIONS.get(status, frozenset())

	def can_transition_to(self, new_status: str) -> bool:
		return new_status in self.allowed_transitions(self.booking_status)

	@property
	def is_terminal(self) -> bool:
		return not self.allowed_transitions(self.booking_status)

	def __str__(self):  # pragma: no cover
		return f"Booking {self.booking_code}"


class BookingRoom(models.Model):
	"""One room line of a booking."""

	booking = models.ForeignKey(Booking, related_name='rooms', on_delete=models.CASCADE)
	room = models.ForeignKey(Room, related_name='booking_lines', on_delete=models.PROTECT)
	room_type = models.CharField(max_length=20, choices=RoomType.choices)
	quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
	price_per_night = models.PositiveBigIntegerField()
	effective_price = models.PositiveBigIntegerField()
	price_source = models.CharField(max_length=10, choices=PriceSource.choices, default=PriceSource.BASE)
	guest_name = models.CharField(max_length=150, blank=True)

	class Meta:
		ordering = ['id']
		constraints = [
			models.UniqueConstraint(fields=['booking', 'room'], name='booking_room_unique_line'),
			models.CheckConstraint(condition=Q(quantity__gte=1), name='booking_room_quantity_positive'),
		]

	def __str__(self):  # pragma: no cover
		return f"{self.quantity} x {self.room_id} on {self.booking_id}"
