"""Best-effort notification dispatch.

Notifications are emitted after the surrounding transaction commits and never
propagate failures back into the booking flow.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Callable

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db import transaction

logger = logging.getLogger(__name__)


def send_booking_email(subject: str, message: str, recipient_list: list[str]) -> None:
	"""Send transactional booking emails."""

	recipients = [email for email in recipient_list if email]
	if not recipients:
		return

	send_mail(
		subject,
		message,
		settings.DEFAULT_FROM_EMAIL,
		recipients,
		fail_silently=False,
	)


def notify_admins(*, subject: str, message: str) -> None:
	User = get_user_model()
	recipients = list(
		User.objects.filter(is_staff=True, is_active=True)
		.exclude(email='')
		.values_list('email', flat=True)
	)
	if not recipients:
		logger.debug('No admin recipients for notification: %s', subject)
		return
	send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, recipients, fail_silently=False)


def _run_safely(label: str, callback: Callable[[], None]) -> None:
	try:
		callback()
	except Exception:
		logger.exception('Notification %s failed', label)


def dispatch_on_commit(label: str, callback: Callable[..., None], **kwargs) -> None:
	"""Schedule ``callback(**kwargs)`` to run once the current transaction commits."""

	transaction.on_commit(partial(_run_safely, label, partial(callback, **kwargs)))
