import threading
import unittest
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from bookings.models import Booking, BookingRoom
from core.exceptions import (
	BookingEngineError,
	DuplicateLockError,
	LockContentionError,
	NotOwnerError,
	PriceLockNotFoundError,
	RoomNotFoundError,
	StalePriceError,
)
from hotels.models import Hotel, Room, RoomType
from hotels.services import create_last_minute_deal

from .models import DemandLevel, PriceLock, PriceSource
from .price_calendar import demand_level_for, get_price_calendar, parse_month
from .services import (
	cancel_lock,
	get_active_lock,
	list_active_locks,
	lock_price,
	purge_expired_locks,
	resolve_effective_price,
)


class PricingFixtureMixin:
	def create_fixtures(self) -> None:
		User = get_user_model()
		self.owner = User.objects.create_user(email='agent@example.com', password='password123', member_type='AGENT')
		self.guest = User.objects.create_user(email='guest@example.com', password='password123')
		self.other_guest = User.objects.create_user(email='other@example.com', password='password123')
		self.hotel = Hotel.objects.create(owner=self.owner, name='Harbor View', location='Busan')
		self.room = Room.objects.create(
			hotel=self.hotel,
			room_type=RoomType.DELUXE,
			room_name='Deluxe Twin',
			base_price=100000,
			weekend_surcharge=20000,
			total_rooms=10,
		)


class PriceLockStoreTests(PricingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()

	def test_lock_holds_base_price_for_thirty_minutes(self) -> None:
		now = timezone.now()
		price_lock = lock_price(self.guest, self.room.pk, 100000, now=now)
		self.assertEqual(price_lock.locked_price, 100000)
		self.assertEqual(price_lock.expires_at, now + timedelta(minutes=30))

	@override_settings(PRICE_LOCK_MINUTES=10)
	def test_lock_duration_is_configurable(self) -> None:
		now = timezone.now()
		price_lock = lock_price(self.guest, self.room.pk, 100000, now=now)
		self.assertEqual(price_lock.expires_at, now + timedelta(minutes=10))

	def test_stale_price_is_rejected(self) -> None:
		with self.assertRaises(StalePriceError):
			lock_price(self.guest, self.room.pk, 90000)
		self.assertFalse(PriceLock.objects.exists())

	def test_unknown_room_is_rejected(self) -> None:
		with self.assertRaises(RoomNotFoundError):
			lock_price(self.guest, self.room.pk + 100, 100000)

	def test_second_active_lock_is_rejected(self) -> None:
		lock_price(self.guest, self.room.pk, 100000)
		with self.assertRaises(DuplicateLockError):
			lock_price(self.guest, self.room.pk, 100000)
		self.assertEqual(PriceLock.objects.count(), 1)

	def test_other_members_can_lock_the_same_room(self) -> None:
		lock_price(self.guest, self.room.pk, 100000)
		lock_price(self.other_guest, self.room.pk, 100000)
		self.assertEqual(PriceLock.objects.filter(room=self.room).count(), 2)

	def test_expired_lock_does_not_block_a_new_one(self) -> None:
		now = timezone.now()
		lock_price(self.guest, self.room.pk, 100000, now=now)
		later = now + timedelta(minutes=31)
		lock_price(self.guest, self.room.pk, 100000, now=later)
		self.assertEqual(list_active_locks(self.guest, now=later).count(), 1)

	def test_cancel_requires_the_holder(self) -> None:
		price_lock = lock_price(self.guest, self.room.pk, 100000)
		with self.assertRaises(NotOwnerError):
			cancel_lock(self.other_guest, price_lock.pk)
		cancel_lock(self.guest, price_lock.pk)
		self.assertFalse(PriceLock.objects.exists())

	def test_cancel_unknown_or_expired_lock(self) -> None:
		now = timezone.now()
		price_lock = lock_price(self.guest, self.room.pk, 100000, now=now)
		with self.assertRaises(PriceLockNotFoundError):
			cancel_lock(self.guest, price_lock.pk + 1)
		with self.assertRaises(PriceLockNotFoundError):
			cancel_lock(self.guest, price_lock.pk, now=now + timedelta(hours=1))

	def test_expired_locks_are_invisible(self) -> None:
		now = timezone.now()
		lock_price(self.guest, self.room.pk, 100000, now=now)
		self.assertIsNotNone(get_active_lock(self.guest, self.room.pk, now=now + timedelta(minutes=29)))
		self.assertIsNone(get_active_lock(self.guest, self.room.pk, now=now + timedelta(minutes=30)))

	def test_purge_respects_grace_period(self) -> None:
		now = timezone.now()
		old = lock_price(self.guest, self.room.pk, 100000, now=now - timedelta(hours=4))
		recent = lock_price(self.other_guest, self.room.pk, 100000, now=now - timedelta(hours=1))

		deleted = purge_expired_locks(now=now)

		self.assertEqual(deleted, 1)
		self.assertFalse(PriceLock.objects.filter(pk=old.pk).exists())
		self.assertTrue(PriceLock.objects.filter(pk=recent.pk).exists())

	def test_purge_command(self) -> None:
		lock_price(self.guest, self.room.pk, 100000, now=timezone.now() - timedelta(hours=5))
		out = StringIO()
		call_command('purge_price_locks', stdout=out)
		self.assertIn('Purged 1 expired price lock(s).', out.getvalue())


class PriceResolverTests(PricingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()

	def test_base_price_without_lock_or_deal(self) -> None:
		effective = resolve_effective_price(self.guest, self.room.pk)
		self.assertEqual(effective.price, 100000)
		self.assertEqual(effective.source, PriceSource.BASE)

	def test_active_deal_beats_base_price(self) -> None:
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(hours=2))
		effective = resolve_effective_price(self.guest, self.room.pk)
		self.assertEqual(effective.price, 80000)
		self.assertTrue(effective.is_deal)
		self.assertEqual(effective.discount_percent, 20)

	def test_lock_beats_deal_and_later_price_changes(self) -> None:
		lock_price(self.guest, self.room.pk, 100000)
		Room.objects.filter(pk=self.room.pk).update(base_price=130000)
		create_last_minute_deal(self.room.pk, 10, timezone.now() + timedelta(hours=2))

		effective = resolve_effective_price(self.guest, self.room.pk)
		self.assertTrue(effective.is_locked)
		self.assertEqual(effective.price, 100000)

		other = resolve_effective_price(self.other_guest, self.room.pk)
		self.assertEqual(other.source, PriceSource.DEAL)
		self.assertEqual(other.price, 117000)

	def test_lapsed_deal_falls_back_to_base(self) -> None:
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(hours=1))
		effective = resolve_effective_price(self.guest, self.room.pk, now=timezone.now() + timedelta(hours=2))
		self.assertEqual(effective.source, PriceSource.BASE)


class PriceCalendarTests(PricingFixtureMixin, TestCase):
	def setUp(self) -> None:
		self.create_fixtures()

	def book(self, check_in: date, nights: int, quantity: int, booking_status=Booking.BookingStatus.CONFIRMED) -> Booking:
		booking = Booking.objects.create(
			guest=self.guest,
			hotel=self.hotel,
			check_in_date=check_in,
			check_out_date=check_in + timedelta(days=nights),
			nights=nights,
			subtotal=0,
			total_price=0,
			booking_status=booking_status,
		)
		BookingRoom.objects.create(
			booking=booking,
			room=self.room,
			room_type=self.room.room_type,
			quantity=quantity,
			price_per_night=self.room.base_price,
			effective_price=self.room.base_price,
		)
		return booking

	def test_high_demand_saturday(self) -> None:
		# 2030-03-02 is a Saturday.
		self.book(date(2030, 3, 2), nights=1, quantity=8)
		price_calendar = get_price_calendar(self.room.pk, '2030-03')
		saturday = price_calendar.days[1]

		self.assertEqual(saturday.date, date(2030, 3, 2))
		self.assertTrue(saturday.is_weekend)
		self.assertEqual(saturday.booked_rooms, 8)
		self.assertEqual(saturday.available_rooms, 2)
		self.assertEqual(saturday.occupancy_rate, Decimal('0.8'))
		self.assertEqual(saturday.demand_level, DemandLevel.HIGH)
		self.assertEqual(saturday.price, 144000)

	def test_month_shape_and_summary(self) -> None:
		self.book(date(2030, 3, 2), nights=1, quantity=8)
		self.book(date(2030, 3, 6), nights=1, quantity=4)
		price_calendar = get_price_calendar(self.room.pk, '2030-03')

		self.assertEqual(len(price_calendar.days), 31)
		self.assertEqual(price_calendar.days[0].price, 120000)
		self.assertEqual(price_calendar.days[5].demand_level, DemandLevel.MEDIUM)
		self.assertEqual(price_calendar.days[5].price, 105000)
		self.assertEqual(price_calendar.cheapest_date.date, date(2030, 3, 3))
		self.assertEqual(price_calendar.most_expensive_date.date, date(2030, 3, 2))
		self.assertEqual(price_calendar.savings, 44000)
		self.assertEqual(price_calendar.average_price, 107387)

	def test_cancelled_and_no_show_bookings_do_not_count(self) -> None:
		self.book(date(2030, 3, 4), nights=2, quantity=9, booking_status=Booking.BookingStatus.CANCELLED)
		self.book(date(2030, 3, 4), nights=1, quantity=9, booking_status=Booking.BookingStatus.NO_SHOW)
		price_calendar = get_price_calendar(self.room.pk, date(2030, 3, 15))
		self.assertEqual(price_calendar.days[3].booked_rooms, 0)
		self.assertEqual(price_calendar.days[3].demand_level, DemandLevel.LOW)

	def test_stay_crossing_month_boundary_counts_only_inside_month(self) -> None:
		self.book(date(2030, 2, 27), nights=3, quantity=5)
		price_calendar = get_price_calendar(self.room.pk, '2030-03')
		self.assertEqual(price_calendar.days[0].booked_rooms, 5)
		self.assertEqual(price_calendar.days[1].booked_rooms, 0)

	def test_demand_thresholds(self) -> None:
		self.assertEqual(demand_level_for(Decimal('0.39')), DemandLevel.LOW)
		self.assertEqual(demand_level_for(Decimal('0.4')), DemandLevel.MEDIUM)
		self.assertEqual(demand_level_for(Decimal('0.79')), DemandLevel.MEDIUM)
		self.assertEqual(demand_level_for(Decimal('1')), DemandLevel.HIGH)

	def test_invalid_month_is_rejected(self) -> None:
		with self.assertRaises(BookingEngineError):
			parse_month('March 2030')

	def test_defaults_to_current_month(self) -> None:
		self.assertEqual(parse_month(None), timezone.localdate().replace(day=1))


class PricingApiTests(PricingFixtureMixin, APITestCase):
	def setUp(self) -> None:
		self.create_fixtures()
		self.client.force_authenticate(self.guest)

	def test_create_and_list_locks(self) -> None:
		response = self.client.post(reverse('pricing:price-lock-list'), {'room_id': self.room.pk, 'price': 100000}, format='json')
		self.assertEqual(response.status_code, status.HTTP_201_CREATED)
		self.assertEqual(response.data['locked_price'], 100000)

		response = self.client.get(reverse('pricing:price-lock-list'))
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['count'], 1)

	def test_duplicate_and_stale_locks_are_bad_requests(self) -> None:
		url = reverse('pricing:price-lock-list')
		self.client.post(url, {'room_id': self.room.pk, 'price': 100000}, format='json')

		response = self.client.post(url, {'room_id': self.room.pk, 'price': 100000}, format='json')
		self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
		self.assertEqual(response.data['code'], 'duplicate_lock')

		response = self.client.post(url, {'room_id': self.room.pk, 'price': 1}, format='json')
		self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
		self.assertEqual(response.data['code'], 'stale_price')

	def test_contention_is_a_conflict(self) -> None:
		with mock.patch('pricing.services._lock_room_row', side_effect=LockContentionError()):
			response = self.client.post(
				reverse('pricing:price-lock-list'),
				{'room_id': self.room.pk, 'price': 100000},
				format='json',
			)
		self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
		self.assertEqual(response.data['code'], 'lock_contention')

	def test_cancel_someone_elses_lock_is_forbidden(self) -> None:
		price_lock = lock_price(self.other_guest, self.room.pk, 100000)
		response = self.client.delete(reverse('pricing:price-lock-detail', args=[price_lock.pk]))
		self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

		self.client.force_authenticate(self.other_guest)
		response = self.client.delete(reverse('pricing:price-lock-detail', args=[price_lock.pk]))
		self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

	def test_effective_price_reports_lock(self) -> None:
		lock_price(self.guest, self.room.pk, 100000)
		response = self.client.get(reverse('pricing:effective-price', args=[self.room.pk]))
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['source'], PriceSource.LOCK)
		self.assertTrue(response.data['is_locked'])

	def test_price_calendar_endpoint(self) -> None:
		self.client.force_authenticate(None)
		response = self.client.get(reverse('pricing:price-calendar', args=[self.room.pk]), {'month': '2030-03'})
		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['month'], '2030-03')
		self.assertEqual(len(response.data['days']), 31)

	def test_price_calendar_bad_month(self) -> None:
		response = self.client.get(reverse('pricing:price-calendar', args=[self.room.pk]), {'month': 'soon'})
		self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


@unittest.skipUnless(connection.vendor == 'postgresql', 'Row locks need a database with SELECT ... FOR UPDATE')
class ConcurrentPriceLockTests(PricingFixtureMixin, TransactionTestCase):
	def setUp(self) -> None:
		self.create_fixtures()

	def test_concurrent_requests_create_one_lock(self) -> None:
		barrier = threading.Barrier(4)
		outcomes: list[str] = []

		def attempt() -> None:
			barrier.wait()
			try:
				lock_price(self.guest, self.room.pk, 100000)
				outcomes.append('locked')
			except (DuplicateLockError, LockContentionError) as exc:
				outcomes.append(exc.default_code)
			finally:
				connection.close()

		threads = [threading.Thread(target=attempt) for _ in range(4)]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		self.assertEqual(outcomes.count('locked'), 1)
		self.assertEqual(PriceLock.objects.filter(user=self.guest, room=self.room).count(), 1)
