"""Inventory ledger and last-minute deal services for rooms."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from django.db.models import F
from django.utils import timezone

from core.exceptions import BookingEngineError, CapacityError, RoomNotFoundError, UnauthorizedError
from core.models import round_half_up

from .models import Room

logger = logging.getLogger(__name__)


def get_room(room_id: int) -> Room:
    try:
        return Room.objects.select_related('hotel').get(pk=room_id)
    except Room.DoesNotExist:
        raise RoomNotFoundError(f'Room {room_id} not found') from None


def adjust_inventory(room_id: int, delta: int) -> int:
    """Move ``available_rooms`` by ``delta`` in a single conditional update.

    The bound check and the write happen in one statement, so concurrent
    adjustments on the same room cannot interleave destructively. Returns the
    new ``available_rooms`` value.
    """
    if delta == 0:
        return get_room(room_id).available_rooms

    queryset = Room.objects.filter(pk=room_id)
    if delta < 0:
        queryset = queryset.filter(available_rooms__gte=-delta)
    else:
        queryset = queryset.filter(available_rooms__lte=F('total_rooms') - delta)

    updated = queryset.update(available_rooms=F('available_rooms') + delta, updated_at=timezone.now())
    if not updated:
        room = get_room(room_id)
        logger.warning(
            'Rejected inventory adjustment of %s on room %s (%s/%s available)',
            delta,
            room_id,
            room.available_rooms,
            room.total_rooms,
        )
        raise CapacityError(
            f'Cannot adjust {room.room_name} by {delta}: '
            f'{room.available_rooms} of {room.total_rooms} rooms available'
        )

    available = Room.objects.filter(pk=room_id).values_list('available_rooms', flat=True).get()
    logger.debug('Adjusted room %s inventory by %s (now %s)', room_id, delta, available)
    return available


def require_room_operator(room: Room, actor) -> None:
    if getattr(actor, 'is_admin_member', False) or room.hotel.owner_id == actor.pk:
        return
    raise UnauthorizedError('Only the hotel owner or an administrator can manage this room.')


def reserve_inventory(room_id: int, quantity: int) -> int:
    return adjust_inventory(room_id, -quantity)


def release_inventory(room_id: int, quantity: int) -> int:
    return adjust_inventory(room_id, quantity)


def create_last_minute_deal(room_id: int, discount_percent: int, valid_until: datetime) -> Room:
    if not 1 <= discount_percent <= 99:
        raise BookingEngineError('Discount percent must be between 1 and 99.')
    if valid_until <= timezone.now():
        raise BookingEngineError('Deal must end in the future.')

    room = get_room(room_id)
    deal_price = round_half_up(Decimal(room.base_price) * (Decimal(100 - discount_percent) / Decimal(100)))
    room.deal_active = True
    room.deal_discount_percent = discount_percent
    room.deal_original_price = room.base_price
    room.deal_price = deal_price
    room.deal_valid_until = valid_until
    room.save(update_fields=[
        'deal_active',
        'deal_discount_percent',
        'deal_original_price',
        'deal_price',
        'deal_valid_until',
        'updated_at',
    ])
    logger.info('Activated %s%% deal on room %s until %s', discount_percent, room_id, valid_until)
    return room


_CLEARED_DEAL = {
    'deal_active': False,
    'deal_discount_percent': None,
    'deal_original_price': None,
    'deal_price': None,
    'deal_valid_until': None,
}


def expire_last_minute_deal(room_id: int) -> None:
    if not Room.objects.filter(pk=room_id).update(**_CLEARED_DEAL, updated_at=timezone.now()):
        raise RoomNotFoundError(f'Room {room_id} not found')


def expire_stale_deals(now: datetime | None = None) -> int:
    now = now or timezone.now()
    expired = Room.objects.filter(deal_active=True, deal_valid_until__lte=now).update(
        **_CLEARED_DEAL,
        updated_at=now,
    )
    if expired:
        logger.info('Expired %s last-minute deal(s)', expired)
    return expired
