"""Shared base models and helpers for the booking engine."""

from __future__ import annotations

import secrets
import time
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterator

from django.db import models

BASE36_ALPHABET = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'
WEEKEND_DAYS = frozenset({4, 5})  # Friday, Saturday


class TimeStampedModel(models.Model):
	"""Abstract base model with created/updated timestamps."""

	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		abstract = True


def _to_base36(value: int) -> str:
	if value == 0:
		return '0'
	digits: list[str] = []
	while value:
		value, remainder = divmod(value, 36)
		digits.append(BASE36_ALPHABET[remainder])
	return ''.join(reversed(digits))


class BookingCodeMixin(models.Model):
	"""Adds a unique human-shareable booking code."""

	booking_code = models.CharField(max_length=24, unique=True, editable=False)

	class Meta:
		abstract = True

	def save(self, *args: Any, **kwargs: Any) -> None:
		if not self.booking_code:
			self.booking_code = self.generate_booking_code()
		super().save(*args, **kwargs)

	@staticmethod
	def generate_booking_code(prefix: str = 'BK') -> str:
		timestamp = _to_base36(int(time.time() * 1000))
		suffix = ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(6))
		return f"{prefix}{timestamp}{suffix}"


def round_half_up(value: Decimal | int) -> int:
	"""Round a monetary amount to the nearest minor unit, halves away from zero."""

	return int(Decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def daterange(start_date: date, end_date: date) -> Iterator[date]:
	"""Yield dates from start_date to end_date (exclusive)."""

	current = start_date
	while current < end_date:
		yield current
		current += timedelta(days=1)


def is_weekend(day: date) -> bool:
	return day.weekday() in WEEKEND_DAYS
