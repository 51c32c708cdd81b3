"""Price lock store and effective price resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from core.exceptions import (
    DuplicateLockError,
    LockContentionError,
    NotOwnerError,
    PriceLockNotFoundError,
    RoomNotFoundError,
    StalePriceError,
)
from hotels.models import Room
from hotels.services import get_room

from .models import PriceLock, PriceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectivePrice:
    price: int
    source: str
    discount_percent: int = 0
    lock: PriceLock | None = None

    @property
    def is_locked(self) -> bool:
        return self.source == PriceSource.LOCK

    @property
    def is_deal(self) -> bool:
        return self.source == PriceSource.DEAL


def lock_duration() -> timedelta:
    return timedelta(minutes=settings.PRICE_LOCK_MINUTES)


def _lock_room_row(room_id: int) -> Room:
    try:
        return Room.objects.select_for_update(nowait=True).get(pk=room_id)
    except Room.DoesNotExist:
        raise RoomNotFoundError(f'Room {room_id} not found') from None
    except DatabaseError as exc:
        logger.info('Price lock contention on room %s: %s', room_id, exc)
        raise LockContentionError() from exc


def lock_price(user, room_id: int, submitted_price: int, *, now: datetime | None = None) -> PriceLock:
    """Hold the room's current base price for ``user`` for the lock duration."""
    now = now or timezone.now()
    with transaction.atomic():
        room = _lock_room_row(room_id)

        if submitted_price != room.base_price:
            raise StalePriceError()

        if PriceLock.objects.active(now).filter(user=user, room=room).exists():
            raise DuplicateLockError()

        price_lock = PriceLock.objects.create(
            user=user,
            room=room,
            locked_price=room.base_price,
            expires_at=now + lock_duration(),
        )

    logger.info('User %s locked price %s on room %s until %s', user.pk, price_lock.locked_price, room_id, price_lock.expires_at)
    return price_lock


def cancel_lock(user, lock_id: int, *, now: datetime | None = None) -> None:
    try:
        price_lock = PriceLock.objects.active(now).get(pk=lock_id)
    except PriceLock.DoesNotExist:
        raise PriceLockNotFoundError(f'Price lock {lock_id} not found') from None

    if price_lock.user_id != user.pk:
        raise NotOwnerError('Only the lock holder can cancel this price lock.')

    price_lock.delete()
    logger.info('User %s cancelled price lock %s', user.pk, lock_id)


def get_active_lock(user, room_id: int, *, now: datetime | None = None) -> PriceLock | None:
    if user is None or not getattr(user, 'pk', None):
        return None
    return PriceLock.objects.active(now).filter(user=user, room_id=room_id).order_by('-expires_at').first()


def list_active_locks(user, *, now: datetime | None = None):
    return PriceLock.objects.active(now).filter(user=user).select_related('room').order_by('-created_at')


def purge_expired_locks(*, grace: timedelta | None = None, now: datetime | None = None) -> int:
    """Hard-delete locks that lapsed more than ``grace`` ago."""
    now = now or timezone.now()
    if grace is None:
        grace = timedelta(hours=settings.PRICE_LOCK_PURGE_GRACE_HOURS)
    deleted, _ = PriceLock.objects.expired(now - grace).delete()
    if deleted:
        logger.info('Purged %s expired price lock(s)', deleted)
    return deleted


def resolve_effective_price(user, room: Room | int, *, now: datetime | None = None) -> EffectivePrice:
    """Return the price a purchase must honor: lock, then deal, then base price."""
    now = now or timezone.now()
    if not isinstance(room, Room):
        room = get_room(room)

    price_lock = get_active_lock(user, room.pk, now=now)
    if price_lock is not None:
        return EffectivePrice(price=price_lock.locked_price, source=PriceSource.LOCK, lock=price_lock)

    if room.has_active_deal(now):
        return EffectivePrice(
            price=room.deal_price,
            source=PriceSource.DEAL,
            discount_percent=room.deal_discount_percent or 0,
        )

    return EffectivePrice(price=room.base_price, source=PriceSource.BASE)
