"""Monthly price calendar derived from booked-vs-total occupancy."""

from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from bookings.models import Booking, BookingRoom
from core.exceptions import BookingEngineError
from core.models import daterange, is_weekend, round_half_up
from hotels.models import Room
from hotels.services import get_room

from .models import DemandLevel

logger = logging.getLogger(__name__)

HIGH_DEMAND_THRESHOLD = Decimal('0.8')
MEDIUM_DEMAND_THRESHOLD = Decimal('0.4')
DEMAND_MULTIPLIERS = {
    DemandLevel.HIGH: Decimal('1.20'),
    DemandLevel.MEDIUM: Decimal('1.05'),
    DemandLevel.LOW: Decimal('1.00'),
}
NON_OCCUPYING_STATUSES = (Booking.BookingStatus.CANCELLED, Booking.BookingStatus.NO_SHOW)


@dataclass
class DayPrice:
    date: date
    price: int
    is_weekend: bool
    demand_level: str
    booked_rooms: int
    available_rooms: int
    occupancy_rate: Decimal


@dataclass
class PriceCalendar:
    room: Room
    month: date
    days: list[DayPrice]
    cheapest_date: DayPrice
    most_expensive_date: DayPrice
    average_price: int
    savings: int


def parse_month(value: str | date | None) -> date:
    """Return the first day of the requested month (current month when omitted)."""
    if value is None or value == '':
        today = timezone.localdate()
        return today.replace(day=1)
    if isinstance(value, datetime):
        return value.date().replace(day=1)
    if isinstance(value, date):
        return value.replace(day=1)
    try:
        parsed = datetime.strptime(value.strip()[:7], '%Y-%m')
    except ValueError:
        raise BookingEngineError('Month must be formatted as YYYY-MM.') from None
    return parsed.date()


def demand_level_for(occupancy_rate: Decimal) -> str:
    if occupancy_rate >= HIGH_DEMAND_THRESHOLD:
        return DemandLevel.HIGH
    if occupancy_rate >= MEDIUM_DEMAND_THRESHOLD:
        return DemandLevel.MEDIUM
    return DemandLevel.LOW


def price_for_day(base_price: int, weekend_surcharge: int, weekend: bool, demand_level: str) -> int:
    price = base_price + (weekend_surcharge if weekend else 0)
    return round_half_up(Decimal(price) * DEMAND_MULTIPLIERS[demand_level])


def booked_units_by_day(room: Room, start: date, end: date) -> dict[date, int]:
    """Sum booked quantity per night in ``[start, end)`` across occupying bookings."""
    lines = (
        BookingRoom.objects
        .filter(
            room=room,
            booking__check_in_date__lt=end,
            booking__check_out_date__gt=start,
        )
        .exclude(booking__booking_status__in=NON_OCCUPYING_STATUSES)
        .values_list('quantity', 'booking__check_in_date', 'booking__check_out_date')
    )
    booked: dict[date, int] = defaultdict(int)
    for quantity, check_in, check_out in lines:
        for night in daterange(max(check_in, start), min(check_out, end)):
            booked[night] += quantity
    return booked


def get_price_calendar(room_id: int, month: str | date | None = None) -> PriceCalendar:
    room = get_room(room_id)
    month_start = parse_month(month)
    days_in_month = calendar.monthrange(month_start.year, month_start.month)[1]
    month_end = month_start + timedelta(days=days_in_month)

    booked = booked_units_by_day(room, month_start, month_end)

    days: list[DayPrice] = []
    for day in daterange(month_start, month_end):
        booked_rooms = booked.get(day, 0)
        occupancy_rate = Decimal(booked_rooms) / Decimal(room.total_rooms) if room.total_rooms else Decimal(0)
        demand_level = demand_level_for(occupancy_rate)
        weekend = is_weekend(day)
        days.append(
            DayPrice(
                date=day,
                price=price_for_day(room.base_price, room.weekend_surcharge, weekend, demand_level),
                is_weekend=weekend,
                demand_level=demand_level,
                booked_rooms=booked_rooms,
                available_rooms=max(0, room.total_rooms - booked_rooms),
                occupancy_rate=occupancy_rate,
            )
        )

    cheapest = min(days, key=lambda day_price: day_price.price)
    most_expensive = max(days, key=lambda day_price: day_price.price)
    average_price = round_half_up(Decimal(sum(day_price.price for day_price in days)) / len(days))

    logger.debug('Built price calendar for room %s, %s', room.pk, month_start.strftime('%Y-%m'))
    return PriceCalendar(
        room=room,
        month=month_start,
        days=days,
        cheapest_date=cheapest,
        most_expensive_date=most_expensive,
        average_price=average_price,
        savings=most_expensive.price - cheapest.price,
    )
