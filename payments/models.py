"""Recorded payment ledger."""

from __future__ import annotations

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models

from core.models import TimeStampedModel


class Payment(TimeStampedModel):
	"""A charge or refund recorded against a booking. Amounts are minor currency units."""

	class Kind(models.TextChoices):
		CHARGE = 'CHARGE', 'Charge'
		REFUND = 'REFUND', 'Refund'

	class Status(models.TextChoices):
		PENDING = 'PENDING', 'Pending'
		SUCCEEDED = 'SUCCEEDED', 'Succeeded'
		PARTIAL = 'PARTIAL', 'Partial'
		FAILED = 'FAILED', 'Failed'
		REFUNDED = 'REFUNDED', 'Refunded'

	recorded_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.SET_NULL,
		null=True,
		blank=True,
		related_name='recorded_payments',
	)
	content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
	object_id = models.PositiveBigIntegerField()
	content_object = GenericForeignKey('content_type', 'object_id')
	kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.CHARGE)
	amount = models.PositiveBigIntegerField()
	method = models.CharField(max_length=20, blank=True)
	status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
	reference = models.CharField(max_length=100, blank=True)
	metadata = models.JSONField(default=dict, blank=True)

	class Meta:
		ordering = ['-created_at']
		indexes = [
			models.Index(fields=['content_type', 'object_id'], name='payment_target_idx'),
			models.Index(fields=['reference'], name='payment_reference_idx'),
		]

	def __str__(self):  # pragma: no cover
		return f"{self.get_kind_display()} {self.reference or self.pk}"
