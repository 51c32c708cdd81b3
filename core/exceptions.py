"""Typed errors raised by the booking engine services."""

from __future__ import annotations

from typing import Any

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError


class BookingEngineError(ValidationError):
	"""Request rejected synchronously; the caller must resubmit with corrected input."""

	default_code = 'invalid'
	default_message = 'The request could not be processed.'

	def __init__(self, message: str | None = None, params: dict[str, Any] | None = None) -> None:
		super().__init__(message or self.default_message, code=self.default_code, params=params)


class AvailabilityError(BookingEngineError):
	"""Raised when requested availability cannot be satisfied."""

	default_code = 'unavailable'


class RoomUnavailableError(AvailabilityError):
	default_code = 'room_unavailable'
	default_message = 'Room is not available for sale.'


class InsufficientCapacityError(AvailabilityError):
	default_code = 'insufficient_capacity'
	default_message = 'Not enough rooms available.'


class CapacityError(AvailabilityError):
	"""The inventory ledger refused an adjustment that would leave its bounds."""

	default_code = 'capacity'
	default_message = 'Inventory adjustment out of bounds.'


class PricingError(BookingEngineError):
	default_code = 'pricing'


class StalePriceError(PricingError):
	default_code = 'stale_price'
	default_message = 'Price has already changed. Please refresh and try again.'


class PriceMismatchError(PricingError):
	default_code = 'price_mismatch'
	default_message = 'Submitted price does not match the current room price.'


class DuplicateLockError(PricingError):
	default_code = 'duplicate_lock'
	default_message = 'You already have an active price lock for this room.'


class LockContentionError(PricingError):
	default_code = 'lock_contention'
	default_message = 'Another request is updating this room. Please try again.'


class InvalidDateRangeError(BookingEngineError):
	default_code = 'invalid_date_range'
	default_message = 'Check-out date must be after check-in date.'


class RoomMismatchError(BookingEngineError):
	default_code = 'room_mismatch'
	default_message = 'All rooms must belong to the specified hotel.'


class IllegalTransitionError(BookingEngineError):
	default_code = 'illegal_transition'
	default_message = 'Booking status transition is not allowed.'


class NotFoundError(ObjectDoesNotExist):
	code = 'not_found'


class RoomNotFoundError(NotFoundError):
	code = 'room_not_found'


class HotelNotFoundError(NotFoundError):
	code = 'hotel_not_found'


class BookingNotFoundError(NotFoundError):
	code = 'booking_not_found'


class PriceLockNotFoundError(NotFoundError):
	code = 'price_lock_not_found'


class UnauthorizedError(PermissionDenied):
	code = 'unauthorized'


class NotOwnerError(UnauthorizedError):
	code = 'not_owner'
