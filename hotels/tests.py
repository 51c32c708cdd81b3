from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import BookingEngineError, CapacityError, RoomNotFoundError

from .models import Hotel, Room, RoomStatus, RoomType
from .services import (
	adjust_inventory,
	create_last_minute_deal,
	expire_last_minute_deal,
	expire_stale_deals,
	release_inventory,
	reserve_inventory,
)


def make_room(owner, **overrides) -> Room:
	hotel = overrides.pop('hotel', None) or Hotel.objects.create(owner=owner, name='Harbor View', location='Busan')
	values = {
		'hotel': hotel,
		'room_type': RoomType.DELUXE,
		'room_name': 'Deluxe Twin',
		'base_price': 100000,
		'weekend_surcharge': 20000,
		'total_rooms': 10,
	}
	values.update(overrides)
	return Room.objects.create(**values)


class InventoryLedgerTests(TestCase):
	def setUp(self) -> None:
		self.owner = get_user_model().objects.create_user(
			email='agent@example.com',
			password='password123',
			member_type='AGENT',
		)
		self.room = make_room(self.owner)

	def test_new_room_starts_fully_available(self) -> None:
		self.assertEqual(self.room.available_rooms, 10)

	def test_reserve_and_release_move_available_rooms(self) -> None:
		self.assertEqual(reserve_inventory(self.room.pk, 3), 7)
		self.assertEqual(release_inventory(self.room.pk, 2), 9)
		self.room.refresh_from_db()
		self.assertEqual(self.room.available_rooms, 9)

	def test_reserving_more_than_available_is_rejected(self) -> None:
		reserve_inventory(self.room.pk, 8)
		with self.assertRaises(CapacityError):
			reserve_inventory(self.room.pk, 3)
		self.room.refresh_from_db()
		self.assertEqual(self.room.available_rooms, 2)

	def test_releasing_above_total_is_rejected(self) -> None:
		reserve_inventory(self.room.pk, 1)
		with self.assertRaises(CapacityError):
			release_inventory(self.room.pk, 2)
		self.room.refresh_from_db()
		self.assertEqual(self.room.available_rooms, 9)

	def test_zero_delta_returns_current_count(self) -> None:
		self.assertEqual(adjust_inventory(self.room.pk, 0), 10)

	def test_unknown_room_raises_not_found(self) -> None:
		with self.assertRaises(RoomNotFoundError):
			adjust_inventory(self.room.pk + 100, -1)

	def test_database_rejects_available_above_total(self) -> None:
		with self.assertRaises(IntegrityError):
			with transaction.atomic():
				Room.objects.filter(pk=self.room.pk).update(available_rooms=11)


class LastMinuteDealTests(TestCase):
	def setUp(self) -> None:
		self.owner = get_user_model().objects.create_user(
			email='agent@example.com',
			password='password123',
			member_type='AGENT',
		)
		self.room = make_room(self.owner)

	def test_deal_price_is_discounted_base_price(self) -> None:
		room = create_last_minute_deal(self.room.pk, 15, timezone.now() + timedelta(hours=6))
		self.assertTrue(room.deal_active)
		self.assertEqual(room.deal_original_price, 100000)
		self.assertEqual(room.deal_price, 85000)
		self.assertTrue(room.has_active_deal())

	def test_deal_price_rounds_half_up(self) -> None:
		self.room.base_price = 99999
		self.room.save()
		room = create_last_minute_deal(self.room.pk, 50, timezone.now() + timedelta(hours=1))
		self.assertEqual(room.deal_price, 50000)

	def test_rejects_out_of_range_discount(self) -> None:
		with self.assertRaises(BookingEngineError):
			create_last_minute_deal(self.room.pk, 0, timezone.now() + timedelta(hours=1))
		with self.assertRaises(BookingEngineError):
			create_last_minute_deal(self.room.pk, 100, timezone.now() + timedelta(hours=1))

	def test_rejects_deal_ending_in_the_past(self) -> None:
		with self.assertRaises(BookingEngineError):
			create_last_minute_deal(self.room.pk, 10, timezone.now() - timedelta(minutes=1))

	def test_expire_deal_clears_fields(self) -> None:
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(hours=1))
		expire_last_minute_deal(self.room.pk)
		self.room.refresh_from_db()
		self.assertFalse(self.room.deal_active)
		self.assertIsNone(self.room.deal_price)
		self.assertFalse(self.room.has_active_deal())

	def test_expire_stale_deals_only_touches_lapsed_deals(self) -> None:
		other = make_room(self.owner, hotel=self.room.hotel, room_name='Suite')
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(hours=1))
		create_last_minute_deal(other.pk, 30, timezone.now() + timedelta(hours=5))

		expired = expire_stale_deals(now=timezone.now() + timedelta(hours=2))

		self.assertEqual(expired, 1)
		self.room.refresh_from_db()
		other.refresh_from_db()
		self.assertFalse(self.room.deal_active)
		self.assertTrue(other.deal_active)

	def test_lapsed_deal_is_not_active_even_before_cleanup(self) -> None:
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(hours=1))
		self.room.refresh_from_db()
		self.assertFalse(self.room.has_active_deal(timezone.now() + timedelta(hours=2)))

	def test_expire_deals_command(self) -> None:
		create_last_minute_deal(self.room.pk, 20, timezone.now() + timedelta(minutes=5))
		Room.objects.filter(pk=self.room.pk).update(deal_valid_until=timezone.now() - timedelta(minutes=1))
		out = StringIO()
		call_command('expire_deals', stdout=out)
		self.assertIn('Expired 1 deal(s).', out.getvalue())


class RoomDealApiTests(APITestCase):
	def setUp(self) -> None:
		User = get_user_model()
		self.owner = User.objects.create_user(email='agent@example.com', password='password123', member_type='AGENT')
		self.stranger = User.objects.create_user(email='guest@example.com', password='password123')
		self.admin = User.objects.create_user(email='admin@example.com', password='password123', member_type='ADMIN')
		self.room = make_room(self.owner)
		self.url = reverse('hotels:room-deal', args=[self.room.pk])
		self.payload = {
			'discount_percent': 25,
			'valid_until': (timezone.now() + timedelta(hours=3)).isoformat(),
		}

	def test_owner_can_activate_deal(self) -> None:
		self.client.force_authenticate(self.owner)
		response = self.client.post(self.url, self.payload, format='json')
		self.assertEqual(response.status_code, status.HTTP_201_CREATED)
		self.assertEqual(response.data['deal_price'], 75000)

	def test_other_member_is_forbidden(self) -> None:
		self.client.force_authenticate(self.stranger)
		response = self.client.post(self.url, self.payload, format='json')
		self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
		self.room.refresh_from_db()
		self.assertFalse(self.room.deal_active)

	def test_admin_can_end_deal(self) -> None:
		create_last_minute_deal(self.room.pk, 10, timezone.now() + timedelta(hours=1))
		self.client.force_authenticate(self.admin)
		response = self.client.delete(self.url)
		self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
		self.room.refresh_from_db()
		self.assertFalse(self.room.deal_active)

	def test_unknown_room_returns_404(self) -> None:
		self.client.force_authenticate(self.owner)
		response = self.client.post(reverse('hotels:room-deal', args=[self.room.pk + 50]), self.payload, format='json')
		self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
		self.assertEqual(response.data['code'], 'room_not_found')

	def test_maintenance_room_is_not_sellable(self) -> None:
		self.room.room_status = RoomStatus.MAINTENANCE
		self.room.save()
		self.assertFalse(self.room.is_sellable)
