"""Booking orchestration, lifecycle transitions and refunds."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable

from django.conf import settings
from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from core.exceptions import (
    BookingEngineError,
    BookingNotFoundError,
    CapacityError,
    HotelNotFoundError,
    IllegalTransitionError,
    InsufficientCapacityError,
    InvalidDateRangeError,
    NotFoundError,
    PriceMismatchError,
    RoomMismatchError,
    RoomNotFoundError,
    RoomUnavailableError,
    UnauthorizedError,
)
from core.models import daterange, is_weekend, round_half_up
from core.notifications import dispatch_on_commit, notify_admins, send_booking_email
from hotels.models import Hotel, Room
from hotels.services import release_inventory, reserve_inventory
from payments.models import Payment
from payments.services import record_payment, record_refund
from pricing.models import PriceLock, PriceSource
from pricing.services import EffectivePrice, resolve_effective_price

from .models import Booking, BookingRoom

logger = logging.getLogger(__name__)

BookingStatus = Booking.BookingStatus
PaymentStatus = Booking.PaymentStatus

FULL_REFUND_AFTER_DAYS = 7
PARTIAL_REFUND_MIN_DAYS = 3
PARTIAL_REFUND_RATE = Decimal('0.5')


@dataclass(frozen=True)
class RoomLine:
    room_id: int
    quantity: int
    price_per_night: int
    guest_name: str = ''


@dataclass
class BookingRequest:
    hotel_id: int
    rooms: list[RoomLine]
    check_in_date: date
    check_out_date: date
    adult_count: int = 1
    child_count: int = 0
    early_check_in: bool = False
    late_check_out: bool = False
    payment_method: str = Booking.PaymentMethod.AT_HOTEL
    special_requests: str = ''


@dataclass
class PricedLine:
    line: RoomLine
    room: Room
    effective: EffectivePrice

    @property
    def source(self) -> str:
        if self.line.price_per_night == self.effective.price:
            return self.effective.source
        return PriceSource.BASE

    @property
    def honors_lock(self) -> bool:
        return self.source == PriceSource.LOCK


@dataclass
class CostBreakdown:
    nights: int
    subtotal: int = 0
    weekend_surcharge: int = 0
    early_check_in_fee: int = 0
    late_check_out_fee: int = 0
    taxes: int = 0
    service_fee: int = 0
    discount: int = 0
    total_price: int = 0
    weekend_nights: int = field(default=0, compare=False)

    def as_fields(self) -> dict[str, int]:
        return {
            'nights': self.nights,
            'subtotal': self.subtotal,
            'weekend_surcharge': self.weekend_surcharge,
            'early_check_in_fee': self.early_check_in_fee,
            'late_check_out_fee': self.late_check_out_fee,
            'taxes': self.taxes,
            'service_fee': self.service_fee,
            'discount': self.discount,
            'total_price': self.total_price,
        }


def calculate_nights(check_in: date, check_out: date) -> int:
    nights = math.ceil((check_out - check_in) / timedelta(days=1))
    if nights < 1:
        raise InvalidDateRangeError()
    return nights


def count_weekend_nights(check_in: date, check_out: date) -> int:
    return sum(1 for night in daterange(check_in, check_out) if is_weekend(night))


def calculate_cost_breakdown(
    priced_lines: Iterable[PricedLine],
    check_in: date,
    check_out: date,
    *,
    early_check_in: bool = False,
    late_check_out: bool = False,
) -> CostBreakdown:
    """Price a stay at the submitted line prices. ``discount`` is always 0 here."""
    nights = calculate_nights(check_in, check_out)
    weekend_nights = count_weekend_nights(check_in, check_out)
    breakdown = CostBreakdown(nights=nights, weekend_nights=weekend_nights)

    for priced in priced_lines:
        quantity = priced.line.quantity
        breakdown.subtotal += quantity * priced.line.price_per_night * nights
        breakdown.weekend_surcharge += quantity * priced.room.weekend_surcharge * weekend_nights

    if early_check_in:
        breakdown.early_check_in_fee = int(settings.EARLY_CHECK_IN_FEE)
    if late_check_out:
        breakdown.late_check_out_fee = int(settings.LATE_CHECK_OUT_FEE)

    subtotal = Decimal(breakdown.subtotal)
    breakdown.taxes = round_half_up(subtotal * Decimal(settings.BOOKING_TAX_RATE))
    breakdown.service_fee = round_half_up(subtotal * Decimal(settings.BOOKING_SERVICE_FEE_RATE))
    breakdown.total_price = (
        breakdown.subtotal
        + breakdown.weekend_surcharge
        + breakdown.early_check_in_fee
        + breakdown.late_check_out_fee
        + breakdown.taxes
        + breakdown.service_fee
        - breakdown.discount
    )
    return breakdown


def _is_admin(actor) -> bool:
    return bool(getattr(actor, 'is_admin_member', False))


def _require_active_member(actor) -> None:
    if actor is None or not getattr(actor, 'is_active_member', False):
        raise UnauthorizedError('Only active members can make bookings.')


def _is_hotel_operator(booking: Booking, actor) -> bool:
    return _is_admin(actor) or booking.hotel.owner_id == actor.pk


def _is_guest_or_admin(booking: Booking, actor) -> bool:
    return _is_admin(actor) or booking.guest_id == actor.pk


def _get_hotel(hotel_id: int) -> Hotel:
    try:
        return Hotel.objects.get(pk=hotel_id)
    except Hotel.DoesNotExist:
        raise HotelNotFoundError(f'Hotel {hotel_id} not found') from None


def _load_rooms(hotel: Hotel, lines: list[RoomLine]) -> dict[int, Room]:
    if not lines:
        raise BookingEngineError('At least one room is required.')

    room_ids = [line.room_id for line in lines]
    if len(set(room_ids)) != len(room_ids):
        raise BookingEngineError('Each room may appear only once per booking.')
    for line in lines:
        if line.quantity < 1:
            raise BookingEngineError('Room quantity must be at least 1.')

    rooms = Room.objects.select_related('hotel').in_bulk(room_ids)
    for room_id in room_ids:
        room = rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(f'Room {room_id} not found')
        if room.hotel_id != hotel.pk:
            raise RoomMismatchError()
    return rooms


def _price_line(user, line: RoomLine, room: Room, now: datetime) -> PricedLine:
    if not room.is_sellable:
        raise RoomUnavailableError(f'{room.room_name} is not available for sale.')
    if line.quantity > room.available_rooms:
        raise InsufficientCapacityError(
            f'Only {room.available_rooms} {room.room_name} room(s) left.'
        )

    effective = resolve_effective_price(user, room, now=now)
    if line.price_per_night not in (room.base_price, effective.price):
        logger.warning(
            'Price mismatch on room %s: submitted %s, base %s, effective %s',
            room.pk,
            line.price_per_night,
            room.base_price,
            effective.price,
        )
        raise PriceMismatchError()
    return PricedLine(line=line, room=room, effective=effective)


def _persist_booking(user, hotel: Hotel, request: BookingRequest, priced_lines: list[PricedLine], breakdown: CostBreakdown) -> Booking:
    with transaction.atomic():
        booking = Booking.objects.create(
            guest=user,
            hotel=hotel,
            check_in_date=request.check_in_date,
            check_out_date=request.check_out_date,
            adult_count=request.adult_count,
            child_count=request.child_count,
            early_check_in=request.early_check_in,
            late_check_out=request.late_check_out,
            payment_method=request.payment_method,
            special_requests=request.special_requests,
            booking_status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            paid_amount=0,
            **breakdown.as_fields(),
        )
        BookingRoom.objects.bulk_create([
            BookingRoom(
                booking=booking,
                room=priced.room,
                room_type=priced.room.room_type,
                quantity=priced.line.quantity,
                price_per_night=priced.line.price_per_night,
                effective_price=priced.effective.price,
                price_source=priced.source,
                guest_name=priced.line.guest_name,
            )
            for priced in priced_lines
        ])

        for priced in priced_lines:
            try:
                reserve_inventory(priced.room.pk, priced.line.quantity)
            except CapacityError as exc:
                raise InsufficientCapacityError(
                    f'{priced.room.room_name} sold out while the booking was being placed.'
                ) from exc

        honored_locks = [priced.effective.lock.pk for priced in priced_lines if priced.honors_lock]
        if honored_locks:
            PriceLock.objects.filter(pk__in=honored_locks).delete()

        dispatch_on_commit('booking_created', send_booking_confirmation, booking_id=booking.pk)
    return booking


def create_booking(user, request: BookingRequest, *, now: datetime | None = None) -> Booking:
    """Validate a purchase, price it, and commit the booking with its inventory decrement."""
    now = now or timezone.now()
    _require_active_member(user)

    hotel = _get_hotel(request.hotel_id)
    rooms = _load_rooms(hotel, request.rooms)
    calculate_nights(request.check_in_date, request.check_out_date)

    priced_lines = [_price_line(user, line, rooms[line.room_id], now) for line in request.rooms]
    breakdown = calculate_cost_breakdown(
        priced_lines,
        request.check_in_date,
        request.check_out_date,
        early_check_in=request.early_check_in,
        late_check_out=request.late_check_out,
    )

    max_attempts = max(1, int(settings.BOOKING_MAX_ATTEMPTS))
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            booking = _persist_booking(user, hotel, request, priced_lines, breakdown)
        except (IntegrityError, OperationalError) as exc:
            last_error = exc
            logger.warning('Booking attempt %s/%s for user %s failed: %s', attempt, max_attempts, user.pk, exc)
            continue
        logger.info(
            'Created booking %s for user %s at hotel %s (total %s)',
            booking.booking_code,
            user.pk,
            hotel.pk,
            booking.total_price,
        )
        return booking

    raise InsufficientCapacityError('The booking could not be completed. Please try again.') from last_error


def days_until_check_in(check_in: date, now: datetime | None = None) -> int:
    now = now or timezone.now()
    start_of_check_in = timezone.make_aware(datetime.combine(check_in, time.min))
    return math.ceil((start_of_check_in - now) / timedelta(days=1))


def calculate_refund(booking: Booking, now: datetime | None = None) -> int:
    """Full refund more than a week out, half from 3 to 7 days, nothing closer."""
    days = days_until_check_in(booking.check_in_date, now)
    if days > FULL_REFUND_AFTER_DAYS:
        return booking.paid_amount
    if days >= PARTIAL_REFUND_MIN_DAYS:
        return round_half_up(Decimal(booking.paid_amount) * PARTIAL_REFUND_RATE)
    return 0


def _lock_booking(booking_id: int) -> Booking:
    try:
        return Booking.objects.select_for_update().get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFoundError(f'Booking {booking_id} not found') from None


def _restore_inventory(booking: Booking) -> None:
    for line in booking.rooms.all():
        try:
            release_inventory(line.room_id, line.quantity)
        except (CapacityError, NotFoundError):
            logger.error(
                'Could not restore %s unit(s) of room %s for booking %s',
                line.quantity,
                line.room_id,
                booking.booking_code,
            )
            raise


def _cancel_locked(booking: Booking, reason: str, actor, now: datetime) -> Booking:
    if booking.booking_status not in Booking.CANCELLABLE_STATUSES:
        raise IllegalTransitionError(
            f'Cannot cancel a booking that is {booking.get_booking_status_display().lower()}.'
        )

    refund = calculate_refund(booking, now)
    booking.booking_status = BookingStatus.CANCELLED
    booking.cancellation_date = now
    booking.cancellation_reason = reason or ''
    booking.refund_amount = refund
    update_fields = [
        'booking_status',
        'cancellation_date',
        'cancellation_reason',
        'refund_amount',
        'updated_at',
    ]
    if refund > 0:
        booking.payment_status = PaymentStatus.REFUNDED
        booking.refund_date = now
        update_fields += ['payment_status', 'refund_date']
    booking.save(update_fields=update_fields)

    _restore_inventory(booking)
    if refund > 0:
        record_refund(content_object=booking, amount=refund, recorded_by=actor, reason=booking.cancellation_reason)

    dispatch_on_commit('booking_cancelled', send_cancellation_notice, booking_id=booking.pk)
    logger.info('Cancelled booking %s (refund %s)', booking.booking_code, refund)
    return booking


def cancel_booking(booking_id: int, reason: str, actor, *, now: datetime | None = None) -> Booking:
    now = now or timezone.now()
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        if not _is_guest_or_admin(booking, actor):
            raise UnauthorizedError('Only the guest or an administrator can cancel this booking.')
        return _cancel_locked(booking, reason, actor, now)


def transition_booking(
    booking_id: int,
    new_status: str,
    actor,
    *,
    reason: str = '',
    now: datetime | None = None,
) -> Booking:
    now = now or timezone.now()
    if new_status not in BookingStatus.values:
        raise IllegalTransitionError(f'Unknown booking status {new_status!r}.')

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        if not _is_hotel_operator(booking, actor):
            raise UnauthorizedError('Only the hotel owner or an administrator can update this booking.')
        if not booking.can_transition_to(new_status):
            raise IllegalTransitionError(
                f'Cannot move booking from {booking.booking_status} to {new_status}.'
            )

        if new_status == BookingStatus.CANCELLED:
            return _cancel_locked(booking, reason, actor, now)

        previous = booking.booking_status
        booking.booking_status = new_status
        booking.save(update_fields=['booking_status', 'updated_at'])
        if new_status in Booking.RELEASING_STATUSES:
            _restore_inventory(booking)

    logger.info('Booking %s moved from %s to %s', booking.booking_code, previous, new_status)
    return booking


_PAYMENT_RECORD_STATUS = {
    PaymentStatus.PENDING: Payment.Status.PENDING,
    PaymentStatus.PAID: Payment.Status.SUCCEEDED,
    PaymentStatus.PARTIAL: Payment.Status.PARTIAL,
    PaymentStatus.REFUNDED: Payment.Status.REFUNDED,
    PaymentStatus.FAILED: Payment.Status.FAILED,
}


def update_payment_status(
    booking_id: int,
    payment_status: str,
    paid_amount: int,
    actor,
    *,
    now: datetime | None = None,
) -> Booking:
    now = now or timezone.now()
    if payment_status not in PaymentStatus.values:
        raise BookingEngineError(f'Unknown payment status {payment_status!r}.')
    if paid_amount < 0:
        raise BookingEngineError('Paid amount cannot be negative.')

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        if not _is_hotel_operator(booking, actor):
            raise UnauthorizedError('Only the hotel owner or an administrator can record payments.')
        if booking.booking_status in Booking.PAYMENT_LOCKED_STATUSES:
            raise IllegalTransitionError(
                f'Cannot change the payment of a booking that is {booking.get_booking_status_display().lower()}.'
            )
        if paid_amount > booking.total_price:
            raise BookingEngineError('Paid amount cannot exceed the booking total.')

        booking.payment_status = payment_status
        booking.paid_amount = paid_amount
        update_fields = ['payment_status', 'paid_amount', 'updated_at']
        if payment_status == PaymentStatus.PAID:
            booking.paid_at = now
            update_fields.append('paid_at')
        booking.save(update_fields=update_fields)

        record_payment(
            content_object=booking,
            amount=paid_amount,
            status=_PAYMENT_RECORD_STATUS[payment_status],
            kind=Payment.Kind.REFUND if payment_status == PaymentStatus.REFUNDED else Payment.Kind.CHARGE,
            method=booking.payment_method,
            recorded_by=actor,
        )

    logger.info('Booking %s payment set to %s (%s)', booking.booking_code, payment_status, paid_amount)
    return booking


def _booking_queryset():
    return Booking.objects.select_related('hotel', 'guest').prefetch_related('rooms__room')


def get_booking(booking_id: int, actor) -> Booking:
    try:
        booking = _booking_queryset().get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFoundError(f'Booking {booking_id} not found') from None

    if not (_is_guest_or_admin(booking, actor) or booking.hotel.owner_id == actor.pk):
        raise UnauthorizedError('You do not have access to this booking.')
    return booking


def list_guest_bookings(actor):
    return _booking_queryset().filter(guest=actor)


def list_hotel_bookings(hotel_id: int, actor):
    hotel = _get_hotel(hotel_id)
    if not (_is_admin(actor) or hotel.owner_id == actor.pk):
        raise UnauthorizedError('Only the hotel owner or an administrator can view these bookings.')
    return _booking_queryset().filter(hotel=hotel)


def send_booking_confirmation(booking_id: int) -> None:
    booking = Booking.objects.select_related('hotel', 'guest').get(pk=booking_id)
    send_booking_email(
        subject='Booking received',
        message=(
            f'Your reservation at {booking.hotel.name} from {booking.check_in_date:%Y-%m-%d} '
            f'to {booking.check_out_date:%Y-%m-%d} has been received. '
            f'Your booking code is {booking.booking_code}. Total: {booking.total_price}.'
        ),
        recipient_list=[booking.guest.email],
    )
    if settings.BOOKING_NOTIFY_ADMINS:
        notify_admins(
            subject=f'New booking {booking.booking_code}',
            message=f'{booking.guest.email} booked {booking.nights} night(s) at {booking.hotel.name}.',
        )


def send_cancellation_notice(booking_id: int) -> None:
    booking = Booking.objects.select_related('hotel', 'guest').get(pk=booking_id)
    refund_line = f' A refund of {booking.refund_amount} will be issued.' if booking.refund_amount else ''
    send_booking_email(
        subject='Booking cancelled',
        message=f'Your booking {booking.booking_code} at {booking.hotel.name} has been cancelled.{refund_line}',
        recipient_list=[booking.guest.email],
    )


def send_checkin_reminder(booking_id: int) -> None:
    booking = Booking.objects.select_related('hotel', 'guest').get(pk=booking_id)
    send_booking_email(
        subject='Check-in today',
        message=f'Your check-in at {booking.hotel.name} is today! Booking code: {booking.booking_code}',
        recipient_list=[booking.guest.email],
    )


def confirm_paid_bookings(*, now: datetime | None = None) -> int:
    confirmed = Booking.objects.filter(
        booking_status=BookingStatus.PENDING,
        payment_status=PaymentStatus.PAID,
    ).update(booking_status=BookingStatus.CONFIRMED, updated_at=now or timezone.now())
    if confirmed:
        logger.info('Auto-confirmed %s paid booking(s)', confirmed)
    return confirmed


def mark_no_shows(*, today: date | None = None) -> int:
    """Mark confirmed bookings whose check-in day has passed and hand their rooms back."""
    today = today or timezone.localdate()
    candidate_ids = list(
        Booking.objects.filter(
            booking_status=BookingStatus.CONFIRMED,
            check_in_date__lt=today,
        ).values_list('pk', flat=True)
    )

    marked = 0
    for booking_id in candidate_ids:
        try:
            with transaction.atomic():
                booking = _lock_booking(booking_id)
                if booking.booking_status != BookingStatus.CONFIRMED:
                    continue
                booking.booking_status = BookingStatus.NO_SHOW
                booking.save(update_fields=['booking_status', 'updated_at'])
                _restore_inventory(booking)
        except (CapacityError, NotFoundError):
            logger.exception('Could not mark booking %s as NO_SHOW', booking_id)
            continue
        marked += 1

    if marked:
        logger.info('Marked %s booking(s) as NO_SHOW', marked)
    return marked


def send_checkin_reminders(*, today: date | None = None) -> int:
    today = today or timezone.localdate()
    booking_ids = list(
        Booking.objects.filter(
            booking_status=BookingStatus.CONFIRMED,
            check_in_date=today,
        ).values_list('pk', flat=True)
    )
    for booking_id in booking_ids:
        dispatch_on_commit('checkin_reminder', send_checkin_reminder, booking_id=booking_id)
    if booking_ids:
        logger.info('Queued %s check-in reminder(s)', len(booking_ids))
    return len(booking_ids)
