"""Price lock models."""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel
from hotels.models import Room


class PriceLockQuerySet(models.QuerySet):
	def active(self, now: datetime | None = None) -> PriceLockQuerySet:
		return self.filter(expires_at__gt=now or timezone.now())

	def expired(self, now: datetime | None = None) -> PriceLockQuerySet:
		return self.filter(expires_at__lte=now or timezone.now())


class PriceLock(TimeStampedModel):
	"""A short-lived guarantee that ``locked_price`` is honored for one user and one room."""

	user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='price_locks', on_delete=models.CASCADE)
	room = models.ForeignKey(Room, related_name='price_locks', on_delete=models.CASCADE)
	locked_price = models.PositiveBigIntegerField()
	expires_at = models.DateTimeField(db_index=True)

	objects = PriceLockQuerySet.as_manager()

	class Meta:
		ordering = ['-created_at']
		indexes = [
			models.Index(fields=['user', 'room'], name='pricelock_user_room_idx'),
		]

	def is_expired(self, now: datetime | None = None) -> bool:
		return self.expires_at <= (now or timezone.now())

	def __str__(self):  # pragma: no cover
		return f"Lock {self.locked_price} on {self.room_id} for {self.user_id} until {self.expires_at:%H:%M}"


class PriceSource(models.TextChoices):
	LOCK = 'LOCK', 'Price lock'
	DEAL = 'DEAL', 'Last-minute deal'
	BASE = 'BASE', 'Base price'


class DemandLevel(models.TextChoices):
	LOW = 'LOW', 'Low'
	MEDIUM = 'MEDIUM', 'Medium'
	HIGH = 'HIGH', 'High'
