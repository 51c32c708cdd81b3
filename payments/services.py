"""Recording of payment and refund entries.

No gateway is contacted here: the booking services record what happened so the
ledger can be reconciled later.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict

from django.db import transaction

from .models import Payment

logger = logging.getLogger(__name__)


def _new_reference(kind: str) -> str:
    return f'{kind.lower()}_{uuid.uuid4().hex[:12]}'


def record_payment(
    *,
    content_object,
    amount: int,
    status: str,
    kind: str = Payment.Kind.CHARGE,
    method: str = '',
    recorded_by=None,
    reference: str = '',
    metadata: Dict[str, Any] | None = None,
) -> Payment:
    with transaction.atomic():
        payment = Payment.objects.create(
            recorded_by=recorded_by,
            content_object=content_object,
            kind=kind,
            amount=amount,
            method=method,
            status=status,
            reference=reference or _new_reference(kind),
            metadata=metadata or {},
        )
    logger.info('Recorded %s %s of %s for %s', kind, payment.reference, amount, content_object)
    return payment


def record_refund(*, content_object, amount: int, recorded_by=None, reason: str = '') -> Payment:
    return record_payment(
        content_object=content_object,
        amount=amount,
        status=Payment.Status.REFUNDED,
        kind=Payment.Kind.REFUND,
        recorded_by=recorded_by,
        metadata={'reason': reason} if reason else None,
    )


def payments_for(content_object):
    return Payment.objects.filter(
        content_type__app_label=content_object._meta.app_label,
        content_type__model=content_object._meta.model_name,
        object_id=content_object.pk,
    )
