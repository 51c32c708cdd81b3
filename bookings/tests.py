import re
import threading
import unittest
from datetime import date, datetime, timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import (
	BookingEngineError,
	BookingNotFoundError,
	CapacityError,
	HotelNotFoundError,
	IllegalTransitionError,
	InsufficientCapacityError,
	InvalidDateRangeError,
	PriceMismatchError,
	RoomMismatchError,
	RoomNotFoundError,
	RoomUnavailableError,
	UnauthorizedError,
)
from hotels.models import Hotel, Room, RoomStatus, RoomType
from hotels.services import create_last_minute_deal
from hotels.services import release_inventory as real_release_inventory
from hotels.services import reserve_inventory as real_reserve_inventory
from payments.models import Payment
from pricing.models import PriceLock, PriceSource
from pricing.services import lock_price
from pricing.services import resolve_effective_price as real_resolve_effective_price

from .models import Booking, BookingRoom
from .services import (
	BookingRequest,
	RoomLine,
	calculate_refund,
	cancel_booking,
	confirm_paid_bookings,
	count_weekend_nights,
	create_booking,
	get_booking,
	list_guest_bookings,
	list_hotel_bookings,
	mark_no_shows,
	send_checkin_reminders,
	transition_booking,
	update_payment_status,
)

# 2030-03-01 is a Friday: a three-night stay covers Friday, Saturday and Sunday nights.
CHECK_IN = date(2030, 3, 1)
CHECK_OUT = date(2030, 3, 4)


class BookingFixtureMixin:
	def create_fixtures(self) -> None:
		User = get_user_model()
		self.owner = User.objects.create_user(email='agent@example.com', password='password123', member_type='AGENT')
		self.other_agent = User.objects.create_user(email='rival@example.com', password='password123', member_type='AGENT')
		self.guest = User.objects.create_user(email='guest@example.com', password='password123')
		self.stranger = User.objects.create_user(email='stranger@example.com', password='password123')
		self.admin = User.objects.create_user(email='admin@example.com', password='password123', member_type='ADMIN')

		self.hotel = Hotel.objects.create(owner=self.owner, name='Harbor View', location='Busan')
		self.room = Room.objects.create(
			hotel=self.hotel,
			room_type=RoomType.DELUXE,
			room_name='Deluxe Twin',
			base_price=100000,
			weekend_surcharge=20000,
			total_rooms=10,
		)
		self.suite = Room.objects.create(
			hotel=self.hotel,
			room_type=RoomType.SUITE,
			room_name='Ocean Suite',
			base_price=250000,
			weekend_surcharge=0,
			total_rooms=3,
		)
		other_hotel = Hotel.objects.create(owner=self.other_agent, name='Mountain Lodge', location='Gangwon')
		self.foreign_room = Room.objects.create(
			hotel=other_hotel,
			room_type=RoomType.STANDARD,
			room_name='Standard Double',
			base_price=80000,
			total_rooms=4,
		)

	def make_request(self, *lines: RoomLine, **overrides) -> BookingRequest:
		values = {
			'hotel_id': self.hotel.pk,
			'rooms': list(lines) or [RoomLine(room_id=self.room.pk, quantity=2, price_per_night=100000)],
			'check_in_date': CHECK_IN,
			'check_out_date': CHECK_OUT,
		}
		values.update(overrides)
		return BookingRequest(**values)

	def make_booking(self, **overrides) -> Booking:
		return create_booking(self.guest, self.make_request(**overrides))

	def available(self, room: Room) -> int:
		room.refresh_from_db()
		return room.available_rooms


class CreateBookingTests(BookingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()

	def test_creates_pending_booking_with_cost_breakdown(self) -> None:
		booking = self.make_booking()

		self.assertEqual(booking.booking_status, Booking.BookingStatus.PENDING)
		self.assertEqual(booking.payment_status, Booking.PaymentStatus.PENDING)
		self.assertEqual(booking.paid_amount, 0)
		self.assertEqual(booking.nights, 3)
		self.assertEqual(booking.subtotal, 600000)
		self.assertEqual(booking.weekend_surcharge, 80000)
		self.assertEqual(booking.taxes, 60000)
		self.assertEqual(booking.service_fee, 30000)
		self.assertEqual(booking.discount, 0)
		self.assertEqual(booking.total_price, 770000)
		self.assertEqual(self.available(self.room), 8)

		line = booking.rooms.get()
		self.assertEqual(line.room_type, RoomType.DELUXE)
		self.assertEqual(line.quantity, 2)
		self.assertEqual(line.price_source, PriceSource.BASE)

	def test_optional_fees_are_added(self) -> None:
		booking = self.make_booking(early_check_in=True, late_check_out=True)
		self.assertEqual(booking.early_check_in_fee, 30000)
		self.assertEqual(booking.late_check_out_fee, 30000)
		self.assertEqual(booking.total_price, 830000)

	@override_settings(EARLY_CHECK_IN_FEE=5000, BOOKING_TAX_RATE='0.08')
	def test_fees_and_rates_follow_settings(self) -> None:
		booking = self.make_booking(early_check_in=True)
		self.assertEqual(booking.early_check_in_fee, 5000)
		self.assertEqual(booking.taxes, 48000)

	def test_multiple_room_lines(self) -> None:
		booking = create_booking(
			self.guest,
			self.make_request(
				RoomLine(room_id=self.room.pk, quantity=1, price_per_night=100000),
				RoomLine(room_id=self.suite.pk, quantity=2, price_per_night=250000, guest_name='Kim'),
			),
		)
		self.assertEqual(booking.subtotal, 3 * (100000 + 2 * 250000))
		self.assertEqual(booking.weekend_surcharge, 40000)
		self.assertEqual(booking.rooms.count(), 2)
		self.assertEqual(self.available(self.room), 9)
		self.assertEqual(self.available(self.suite), 1)

	def test_booking_code_format(self) -> None:
		booking = self.make_booking()
		self.assertRegex(booking.booking_code, r'^BK[0-9A-Z]{7,}$')
		codes = {Booking.generate_booking_code() for _ in range(50)}
		self.assertEqual(len(codes), 50)

	def test_weekend_nights_are_friday_and_saturday(self) -> None:
		self.assertEqual(count_weekend_nights(CHECK_IN, CHECK_OUT), 2)
		self.assertEqual(count_weekend_nights(date(2030, 3, 4), date(2030, 3, 8)), 0)

	def test_check_out_must_follow_check_in(self) -> None:
		with self.assertRaises(InvalidDateRangeError):
			self.make_booking(check_out_date=CHECK_IN)
		with self.assertRaises(InvalidDateRangeError):
			self.make_booking(check_out_date=CHECK_IN - timedelta(days=1))
		self.assertFalse(Booking.objects.exists())
		self.assertEqual(self.available(self.room), 10)

	def test_unknown_hotel_and_rooms(self) -> None:
		with self.assertRaises(HotelNotFoundError):
			self.make_booking(hotel_id=self.hotel.pk + 100)
		with self.assertRaises(RoomNotFoundError):
			create_booking(self.guest, self.make_request(RoomLine(room_id=self.room.pk + 100, quantity=1, price_per_night=1)))

	def test_rooms_must_belong_to_the_hotel(self) -> None:
		with self.assertRaises(RoomMismatchError):
			create_booking(
				self.guest,
				self.make_request(RoomLine(room_id=self.foreign_room.pk, quantity=1, price_per_night=80000)),
			)

	def test_room_may_appear_once(self) -> None:
		line = RoomLine(room_id=self.room.pk, quantity=1, price_per_night=100000)
		with self.assertRaises(BookingEngineError):
			create_booking(self.guest, self.make_request(line, line))

	def test_unsellable_room_is_rejected(self) -> None:
		Room.objects.filter(pk=self.room.pk).update(room_status=RoomStatus.MAINTENANCE)
		with self.assertRaises(RoomUnavailableError):
			self.make_booking()

	def test_quantity_above_availability_is_rejected(self) -> None:
		with self.assertRaises(InsufficientCapacityError):
			create_booking(self.guest, self.make_request(RoomLine(room_id=self.suite.pk, quantity=4, price_per_night=250000)))
		self.assertEqual(self.available(self.suite), 3)

	def test_tampered_price_is_rejected(self) -> None:
		with self.assertRaises(PriceMismatchError):
			create_booking(self.guest, self.make_request(RoomLine(room_id=self.room.pk, quantity=1, price_per_night=1000)))
		self.assertFalse(Booking.objects.exists())

	def test_inactive_member_cannot_book(self) -> None:
		self.guest.member_status = self.guest.MemberStatus.BLOCK
		self.guest.save()
		with self.assertRaises(UnauthorizedError):
			self.make_booking()

	def test_honored_lock_prices_the_stay_and_is_consumed(self) -> None:
		lock_price(self.guest, self.room.pk, 100000)
		Room.objects.filter(pk=self.room.pk).update(base_price=120000)

		booking = create_booking(
			self.guest,
			self.make_request(RoomLine(room_id=self.room.pk, quantity=1, price_per_night=100000)),
		)

		self.assertEqual(booking.subtotal, 300000)
		self.assertEqual(booking.taxes, 30000)
		self.assertEqual(booking.service_fee, 15000)
		self.assertEqual(booking.discount, 0)
		self.assertEqual(booking.total_price, 300000 + 40000 + 30000 + 15000)
		line = booking.rooms.get()
		self.assertEqual(line.price_per_night, 100000)
		self.assertEqual(line.price_source, PriceSource.LOCK)
		self.assertFalse(PriceLock.objects.exists())

	def test_base_price_submission_keeps_the_lock(self) -> None:
		lock_price(self.guest, self.room.pk, 100000)
		Room.objects.filter(pk=self.room.pk).update(base_price=120000)

		booking = create_booking(
			self.guest,
			self.make_request(RoomLine(room_id=self.room.pk, quantity=1, price_per_night=120000)),
		)

		self.assertEqual(booking.subtotal, 360000)
		self.assertEqual(booking.discount, 0)
		self.assertEqual(booking.rooms.get().price_source, PriceSource.BASE)
		self.assertEqual(PriceLock.objects.count(), 1)

	def test_other_members_lock_does_not_apply(self) -> None:
		lock_price(self.stranger, self.room.pk, 100000)
		Room.objects.filter(pk=self.room.pk).update(base_price=120000)
		with self.assertRaises(PriceMismatchError):
			create_booking(self.guest, self.make_request(RoomLine(room_id=self.room.pk, quantity=1, price_per_night=100000)))
		self.assertEqual(PriceLock.objects.count(), 1)

	def test_deal_price_submission_is_charged_at_deal_price(self) -> None:
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(hours=2))

		booking = create_booking(
			self.guest,
			self.make_request(RoomLine(room_id=self.room.pk, quantity=2, price_per_night=80000)),
		)

		self.assertEqual(booking.subtotal, 2 * 80000 * 3)
		self.assertEqual(booking.weekend_surcharge, 80000)
		self.assertEqual(booking.taxes, 48000)
		self.assertEqual(booking.service_fee, 24000)
		self.assertEqual(booking.discount, 0)
		self.assertEqual(booking.total_price, 480000 + 80000 + 48000 + 24000)
		self.assertEqual(booking.rooms.get().price_source, PriceSource.DEAL)

	def test_base_price_submission_during_deal_pays_base_price(self) -> None:
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(hours=2))

		booking = self.make_booking()

		self.assertEqual(booking.discount, 0)
		self.assertEqual(booking.total_price, 770000)
		self.assertEqual(booking.rooms.get().price_source, PriceSource.BASE)

	def test_ledger_refuses_stale_availability_check(self) -> None:
		def sell_out_then_resolve(user, room, **kwargs):
			Room.objects.filter(pk=self.room.pk).update(available_rooms=0)
			return real_resolve_effective_price(user, room, **kwargs)

		with mock.patch('bookings.services.resolve_effective_price', side_effect=sell_out_then_resolve):
			with self.assertRaises(InsufficientCapacityError):
				self.make_booking()

		self.assertFalse(Booking.objects.exists())
		self.assertFalse(BookingRoom.objects.exists())
		self.assertEqual(self.available(self.room), 0)

	def test_failed_reservation_rolls_back_everything(self) -> None:
		def flaky_reserve(room_id, quantity):
			if room_id == self.suite.pk:
				raise CapacityError()
			return real_reserve_inventory(room_id, quantity)

		request = self.make_request(
			RoomLine(room_id=self.room.pk, quantity=2, price_per_night=100000),
			RoomLine(room_id=self.suite.pk, quantity=1, price_per_night=250000),
		)
		with mock.patch('bookings.services.reserve_inventory', side_effect=flaky_reserve):
			with self.assertRaises(InsufficientCapacityError):
				create_booking(self.guest, request)

		self.assertFalse(Booking.objects.exists())
		self.assertFalse(BookingRoom.objects.exists())
		self.assertEqual(self.available(self.room), 10)

	def test_booking_code_collision_is_retried(self) -> None:
		existing = self.make_booking()
		with mock.patch.object(Booking, 'generate_booking_code', side_effect=[existing.booking_code, 'BKRETRY0000001']):
			booking = self.make_booking()
		self.assertEqual(booking.booking_code, 'BKRETRY0000001')
		self.assertEqual(self.available(self.room), 6)

	@override_settings(BOOKING_MAX_ATTEMPTS=2)
	def test_gives_up_after_max_attempts(self) -> None:
		existing = self.make_booking()
		with mock.patch.object(Booking, 'generate_booking_code', return_value=existing.booking_code) as generator:
			with self.assertRaises(InsufficientCapacityError):
				self.make_booking()
		self.assertEqual(generator.call_count, 2)
		self.assertEqual(Booking.objects.count(), 1)
		self.assertEqual(self.available(self.room), 8)

	def test_confirmation_email_sent_after_commit(self) -> None:
		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			booking = self.make_booking()
		self.assertEqual(len(callbacks), 1)
		self.assertEqual(len(mail.outbox), 1)
		self.assertEqual(mail.outbox[0].to, ['guest@example.com'])
		self.assertIn(booking.booking_code, mail.outbox[0].body)

	def test_admins_are_notified_of_new_bookings(self) -> None:
		get_user_model().objects.create_user(email='ops@example.com', password='password123', is_staff=True)
		with self.captureOnCommitCallbacks(execute=True):
			self.make_booking()
		self.assertEqual(len(mail.outbox), 2)
		self.assertEqual(mail.outbox[1].to, ['ops@example.com'])

	def test_notification_failure_does_not_undo_booking(self) -> None:
		with mock.patch('bookings.services.send_booking_email', side_effect=RuntimeError('smtp down')):
			with self.assertLogs('core.notifications', level='ERROR'):
				with self.captureOnCommitCallbacks(execute=True):
					booking = self.make_booking()
		self.assertTrue(Booking.objects.filter(pk=booking.pk).exists())


class BookingStateMachineTests(BookingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()
		self.booking = self.make_booking()

	def test_transition_table(self) -> None:
		statuses = Booking.BookingStatus
		expected = {
			statuses.PENDING: {statuses.CONFIRMED, statuses.CANCELLED},
			statuses.CONFIRMED: {statuses.CHECKED_IN, statuses.CANCELLED, statuses.NO_SHOW},
			statuses.CHECKED_IN: {statuses.CHECKED_OUT},
			statuses.CHECKED_OUT: set(),
			statuses.CANCELLED: set(),
			statuses.NO_SHOW: set(),
		}
		for current, allowed in expected.items():
			booking = Booking(booking_status=current)
			for target in statuses.values:
				with self.subTest(current=current, target=target):
					self.assertEqual(booking.can_transition_to(target), target in allowed)

	def test_full_stay_restores_inventory_on_checkout(self) -> None:
		for new_status in ('CONFIRMED', 'CHECKED_IN'):
			transition_booking(self.booking.pk, new_status, self.owner)
		self.assertEqual(self.available(self.room), 8)

		booking = transition_booking(self.booking.pk, 'CHECKED_OUT', self.owner)

		self.assertEqual(booking.booking_status, Booking.BookingStatus.CHECKED_OUT)
		self.assertEqual(self.available(self.room), 10)

	def test_illegal_transition_leaves_booking_untouched(self) -> None:
		with self.assertRaises(IllegalTransitionError):
			transition_booking(self.booking.pk, 'CHECKED_IN', self.owner)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.booking_status, Booking.BookingStatus.PENDING)
		self.assertEqual(self.available(self.room), 8)

	def test_terminal_states_have_no_exit(self) -> None:
		transition_booking(self.booking.pk, 'CONFIRMED', self.owner)
		transition_booking(self.booking.pk, 'NO_SHOW', self.owner)
		with self.assertRaises(IllegalTransitionError):
			transition_booking(self.booking.pk, 'CONFIRMED', self.owner)

	def test_no_show_restores_inventory(self) -> None:
		transition_booking(self.booking.pk, 'CONFIRMED', self.owner)
		transition_booking(self.booking.pk, 'NO_SHOW', self.admin)
		self.assertEqual(self.available(self.room), 10)

	def test_unknown_status_is_rejected(self) -> None:
		with self.assertRaises(IllegalTransitionError):
			transition_booking(self.booking.pk, 'LOST', self.owner)

	def test_only_hotel_owner_or_admin_may_transition(self) -> None:
		with self.assertRaises(UnauthorizedError):
			transition_booking(self.booking.pk, 'CONFIRMED', self.guest)
		with self.assertRaises(UnauthorizedError):
			transition_booking(self.booking.pk, 'CONFIRMED', self.other_agent)
		booking = transition_booking(self.booking.pk, 'CONFIRMED', self.admin)
		self.assertEqual(booking.booking_status, Booking.BookingStatus.CONFIRMED)

	def test_missing_booking(self) -> None:
		with self.assertRaises(BookingNotFoundError):
			transition_booking(self.booking.pk + 100, 'CONFIRMED', self.owner)

	def test_cancelled_transition_runs_cancellation(self) -> None:
		booking = transition_booking(self.booking.pk, 'CANCELLED', self.owner, reason='Overbooked')
		self.assertEqual(booking.booking_status, Booking.BookingStatus.CANCELLED)
		self.assertEqual(booking.cancellation_reason, 'Overbooked')
		self.assertIsNotNone(booking.cancellation_date)
		self.assertEqual(booking.refund_amount, 0)
		self.assertEqual(self.available(self.room), 10)


class RefundTests(BookingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()
		self.now = timezone.make_aware(datetime(2030, 1, 1, 12, 0))

	def refund_for(self, check_in: date, paid_amount: int = 100000) -> int:
		booking = Booking(check_in_date=check_in, check_out_date=check_in + timedelta(days=1), paid_amount=paid_amount)
		return calculate_refund(booking, now=self.now)

	def test_refund_policy(self) -> None:
		cases = [
			(date(2030, 1, 11), 100000),
			(date(2030, 1, 9), 100000),
			(date(2030, 1, 8), 50000),
			(date(2030, 1, 6), 50000),
			(date(2030, 1, 4), 50000),
			(date(2030, 1, 3), 0),
			(date(2030, 1, 2), 0),
			(date(2029, 12, 30), 0),
		]
		for check_in, expected in cases:
			with self.subTest(check_in=check_in):
				self.assertEqual(self.refund_for(check_in), expected)

	def test_half_refund_rounds_half_up(self) -> None:
		self.assertEqual(self.refund_for(date(2030, 1, 6), paid_amount=100001), 50001)

	def test_unpaid_booking_refunds_nothing(self) -> None:
		self.assertEqual(self.refund_for(date(2030, 1, 11), paid_amount=0), 0)


class CancelBookingTests(BookingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()

	def paid_booking(self, days_ahead: int, paid_amount: int = 100000) -> Booking:
		check_in = timezone.localdate() + timedelta(days=days_ahead)
		booking = self.make_booking(check_in_date=check_in, check_out_date=check_in + timedelta(days=2))
		return update_payment_status(booking.pk, 'PAID', paid_amount, self.owner)

	def test_early_cancellation_refunds_in_full(self) -> None:
		booking = self.paid_booking(days_ahead=10)

		with self.captureOnCommitCallbacks(execute=True):
			booking = cancel_booking(booking.pk, 'Change of plans', self.guest)

		self.assertEqual(booking.booking_status, Booking.BookingStatus.CANCELLED)
		self.assertEqual(booking.refund_amount, 100000)
		self.assertEqual(booking.payment_status, Booking.PaymentStatus.REFUNDED)
		self.assertIsNotNone(booking.refund_date)
		self.assertEqual(self.available(self.room), 10)
		refund = booking.payments.get(kind=Payment.Kind.REFUND)
		self.assertEqual(refund.amount, 100000)
		self.assertEqual(refund.status, Payment.Status.REFUNDED)
		self.assertIn('cancelled', mail.outbox[-1].body)

	def test_mid_window_cancellation_refunds_half(self) -> None:
		booking = cancel_booking(self.paid_booking(days_ahead=5).pk, '', self.guest)
		self.assertEqual(booking.refund_amount, 50000)

	def test_late_cancellation_keeps_payment_status(self) -> None:
		booking = cancel_booking(self.paid_booking(days_ahead=1).pk, '', self.guest)
		self.assertEqual(booking.refund_amount, 0)
		self.assertEqual(booking.payment_status, Booking.PaymentStatus.PAID)
		self.assertIsNone(booking.refund_date)
		self.assertFalse(booking.payments.filter(kind=Payment.Kind.REFUND).exists())
		self.assertEqual(self.available(self.room), 10)

	def test_only_pending_or_confirmed_can_be_cancelled(self) -> None:
		booking = self.paid_booking(days_ahead=10)
		transition_booking(booking.pk, 'CONFIRMED', self.owner)
		transition_booking(booking.pk, 'CHECKED_IN', self.owner)

		with self.assertRaises(IllegalTransitionError):
			cancel_booking(booking.pk, '', self.guest)

		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, Booking.BookingStatus.CHECKED_IN)
		self.assertEqual(self.available(self.room), 8)

	def test_cancelling_twice_is_illegal(self) -> None:
		booking = self.make_booking()
		cancel_booking(booking.pk, '', self.guest)
		with self.assertRaises(IllegalTransitionError):
			cancel_booking(booking.pk, '', self.guest)
		self.assertEqual(self.available(self.room), 10)

	def test_only_guest_or_admin_can_cancel(self) -> None:
		booking = self.make_booking()
		with self.assertRaises(UnauthorizedError):
			cancel_booking(booking.pk, '', self.stranger)
		cancelled = cancel_booking(booking.pk, 'Support request', self.admin)
		self.assertEqual(cancelled.booking_status, Booking.BookingStatus.CANCELLED)

	def test_missing_booking(self) -> None:
		with self.assertRaises(BookingNotFoundError):
			cancel_booking(999999, '', self.guest)


class PaymentStatusTests(BookingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()
		self.booking = self.make_booking()

	def test_owner_records_payment(self) -> None:
		booking = update_payment_status(self.booking.pk, 'PAID', self.booking.total_price, self.owner)
		self.assertEqual(booking.payment_status, Booking.PaymentStatus.PAID)
		self.assertEqual(booking.paid_amount, 770000)
		self.assertIsNotNone(booking.paid_at)
		payment = booking.payments.get()
		self.assertEqual(payment.status, Payment.Status.SUCCEEDED)
		self.assertEqual(payment.recorded_by, self.owner)

	def test_partial_payment_does_not_stamp_paid_at(self) -> None:
		booking = update_payment_status(self.booking.pk, 'PARTIAL', 1000, self.owner)
		self.assertIsNone(booking.paid_at)

	def test_guest_cannot_mark_own_booking_paid(self) -> None:
		with self.assertRaises(UnauthorizedError):
			update_payment_status(self.booking.pk, 'PAID', 770000, self.guest)

	def test_amount_must_fit_total(self) -> None:
		with self.assertRaises(BookingEngineError):
			update_payment_status(self.booking.pk, 'PAID', 770001, self.owner)
		with self.assertRaises(BookingEngineError):
			update_payment_status(self.booking.pk, 'PAID', -1, self.owner)
		with self.assertRaises(BookingEngineError):
			update_payment_status(self.booking.pk, 'SETTLED', 1, self.owner)

	def test_refunded_cancellation_cannot_be_marked_paid_again(self) -> None:
		update_payment_status(self.booking.pk, 'PAID', 770000, self.owner)
		cancel_booking(self.booking.pk, 'Change of plans', self.guest)

		with self.assertRaises(IllegalTransitionError):
			update_payment_status(self.booking.pk, 'PAID', 770000, self.owner)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.REFUNDED)
		self.assertEqual(self.booking.payments.filter(kind=Payment.Kind.CHARGE).count(), 1)

	def test_no_show_payment_is_frozen(self) -> None:
		transition_booking(self.booking.pk, 'CONFIRMED', self.owner)
		transition_booking(self.booking.pk, 'NO_SHOW', self.owner)
		with self.assertRaises(IllegalTransitionError):
			update_payment_status(self.booking.pk, 'PARTIAL', 1000, self.admin)


class BookingQueryTests(BookingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()
		self.booking = self.make_booking()

	def test_guest_owner_and_admin_can_read(self) -> None:
		for actor in (self.guest, self.owner, self.admin):
			with self.subTest(actor=actor.email):
				self.assertEqual(get_booking(self.booking.pk, actor).pk, self.booking.pk)
		with self.assertRaises(UnauthorizedError):
			get_booking(self.booking.pk, self.stranger)

	def test_guest_listing_only_shows_own_bookings(self) -> None:
		self.assertEqual(list(list_guest_bookings(self.guest)), [self.booking])
		self.assertEqual(list(list_guest_bookings(self.stranger)), [])

	def test_hotel_listing_requires_owner(self) -> None:
		self.assertEqual(list(list_hotel_bookings(self.hotel.pk, self.owner)), [self.booking])
		with self.assertRaises(UnauthorizedError):
			list_hotel_bookings(self.hotel.pk, self.other_agent)
		with self.assertRaises(HotelNotFoundError):
			list_hotel_bookings(self.hotel.pk + 100, self.admin)


class BatchJobTests(BookingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()
		self.booking = self.make_booking()

	def test_paid_pending_bookings_are_confirmed(self) -> None:
		unpaid = self.make_booking()
		update_payment_status(self.booking.pk, 'PAID', 770000, self.owner)

		self.assertEqual(confirm_paid_bookings(), 1)

		self.booking.refresh_from_db()
		unpaid.refresh_from_db()
		self.assertEqual(self.booking.booking_status, Booking.BookingStatus.CONFIRMED)
		self.assertEqual(unpaid.booking_status, Booking.BookingStatus.PENDING)

	def test_missed_check_ins_become_no_shows(self) -> None:
		transition_booking(self.booking.pk, 'CONFIRMED', self.owner)

		self.assertEqual(mark_no_shows(today=CHECK_IN), 0)
		self.assertEqual(mark_no_shows(today=CHECK_IN + timedelta(days=1)), 1)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.booking_status, Booking.BookingStatus.NO_SHOW)
		self.assertEqual(self.available(self.room), 10)

	def test_failed_no_show_does_not_stop_the_batch(self) -> None:
		suite_booking = create_booking(
			self.guest,
			self.make_request(RoomLine(room_id=self.suite.pk, quantity=1, price_per_night=250000)),
		)
		transition_booking(self.booking.pk, 'CONFIRMED', self.owner)
		transition_booking(suite_booking.pk, 'CONFIRMED', self.owner)

		def broken_release(room_id, quantity):
			if room_id == self.room.pk:
				raise CapacityError()
			return real_release_inventory(room_id, quantity)

		with mock.patch('bookings.services.release_inventory', side_effect=broken_release):
			with self.assertLogs('bookings.services', level='ERROR'):
				marked = mark_no_shows(today=CHECK_OUT)

		self.assertEqual(marked, 1)
		self.booking.refresh_from_db()
		suite_booking.refresh_from_db()
		self.assertEqual(self.booking.booking_status, Booking.BookingStatus.CONFIRMED)
		self.assertEqual(suite_booking.booking_status, Booking.BookingStatus.NO_SHOW)
		self.assertEqual(self.available(self.room), 8)
		self.assertEqual(self.available(self.suite), 3)

	def test_pending_bookings_are_not_marked_no_show(self) -> None:
		self.assertEqual(mark_no_shows(today=CHECK_OUT), 0)

	def test_checkin_reminders(self) -> None:
		transition_booking(self.booking.pk, 'CONFIRMED', self.owner)
		with self.captureOnCommitCallbacks(execute=True):
			sent = send_checkin_reminders(today=CHECK_IN)
		self.assertEqual(sent, 1)
		self.assertEqual(mail.outbox[-1].subject, 'Check-in today')

	def test_commands(self) -> None:
		update_payment_status(self.booking.pk, 'PAID', 770000, self.owner)

		out = StringIO()
		call_command('confirm_paid_bookings', stdout=out)
		self.assertIn('Confirmed 1 paid booking(s).', out.getvalue())

		out = StringIO()
		call_command('mark_no_shows', '--date', '2030-03-02', stdout=out)
		self.assertIn('Marked 1 booking(s) as NO_SHOW.', out.getvalue())

		out = StringIO()
		call_command('send_checkin_reminders', '--date', '2030-03-01', stdout=out)
		self.assertIn('Sent 0 check-in reminder(s).', out.getvalue())


class BookingApiTests(BookingFixtureMixin, APITestCase):
	def setUp(self) -> None:
		self.create_fixtures()
		self.payload = {
			'hotel_id': self.hotel.pk,
			'rooms': [{'room_id': self.room.pk, 'quantity': 2, 'price_per_night': 100000}],
			'check_in_date': '2030-03-01',
			'check_out_date': '2030-03-04',
			'payment_method': 'CREDIT_CARD',
		}

	def create_via_api(self):
		self.client.force_authenticate(self.guest)
		return self.client.post(reverse('bookings:booking-list'), self.payload, format='json')

	def test_create_booking(self) -> None:
		response = self.create_via_api()
		self.assertEqual(response.status_code, status.HTTP_201_CREATED)
		self.assertTrue(re.match(r'^BK[0-9A-Z]+$', response.data['booking_code']))
		self.assertEqual(response.data['total_price'], 770000)
		self.assertEqual(response.data['payment_method'], 'CREDIT_CARD')
		self.assertEqual(len(response.data['rooms']), 1)

	def test_create_booking_requires_authentication(self) -> None:
		response = self.client.post(reverse('bookings:booking-list'), self.payload, format='json')
		self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

	def test_price_mismatch_is_bad_request(self) -> None:
		self.payload['rooms'][0]['price_per_night'] = 1
		response = self.create_via_api()
		self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
		self.assertEqual(response.data['code'], 'price_mismatch')

	def test_malformed_request_is_bad_request(self) -> None:
		self.payload['rooms'] = []
		response = self.create_via_api()
		self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

	def test_list_filters_by_status(self) -> None:
		booking_id = self.create_via_api().data['id']
		self.create_via_api()
		transition_booking(booking_id, 'CONFIRMED', self.owner)

		response = self.client.get(reverse('bookings:booking-list'), {'booking_status': 'CONFIRMED'})
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['results'][0]['id'], booking_id)

	def test_detail_is_private(self) -> None:
		booking_id = self.create_via_api().data['id']
		self.client.force_authenticate(self.stranger)
		response = self.client.get(reverse('bookings:booking-detail', args=[booking_id]))
		self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

		response = self.client.get(reverse('bookings:booking-detail', args=[booking_id + 100]))
		self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

	def test_owner_transitions_and_records_payment(self) -> None:
		booking_id = self.create_via_api().data['id']
		self.client.force_authenticate(self.owner)

		response = self.client.post(reverse('bookings:booking-payment', args=[booking_id]), {'payment_status': 'PAID', 'paid_amount': 770000}, format='json')
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['payment_status'], 'PAID')

		response = self.client.post(reverse('bookings:booking-status', args=[booking_id]), {'booking_status': 'CONFIRMED'}, format='json')
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['booking_status'], 'CONFIRMED')

		response = self.client.post(reverse('bookings:booking-status', args=[booking_id]), {'booking_status': 'CHECKED_OUT'}, format='json')
		self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
		self.assertEqual(response.data['code'], 'illegal_transition')

	def test_guest_cancels(self) -> None:
		booking_id = self.create_via_api().data['id']
		response = self.client.post(reverse('bookings:booking-cancel', args=[booking_id]), {'reason': 'Sick'}, format='json')
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['booking_status'], 'CANCELLED')
		self.assertEqual(response.data['cancellation_reason'], 'Sick')

	def test_hotel_bookings_listing(self) -> None:
		self.create_via_api()
		self.client.force_authenticate(self.owner)
		response = self.client.get(reverse('bookings:hotel-booking-list', args=[self.hotel.pk]))
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['count'], 1)

		self.client.force_authenticate(self.other_agent)
		response = self.client.get(reverse('bookings:hotel-booking-list', args=[self.hotel.pk]))
		self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


@unittest.skipUnless(connection.vendor == 'postgresql', 'Concurrent booking needs row-level locking')
class ConcurrentBookingTests(BookingFixtureMixin, TransactionTestCase):
	def setUp(self) -> None:
		self.create_fixtures()

	def test_parallel_bookings_never_oversell(self) -> None:
		barrier = threading.Barrier(5)
		outcomes: list[str] = []

		def attempt() -> None:
			barrier.wait()
			try:
				create_booking(self.guest, self.make_request(RoomLine(room_id=self.room.pk, quantity=3, price_per_night=100000)))
				outcomes.append('booked')
			except InsufficientCapacityError:
				outcomes.append('rejected')
			finally:
				connection.close()

		threads = [threading.Thread(target=attempt) for _ in range(5)]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		booked = outcomes.count('booked')
		self.assertLessEqual(booked, 3)
		self.assertEqual(self.available(self.room), 10 - 3 * booked)
		self.assertEqual(Booking.objects.count(), booked)
