"""REST framework integration shared by the API views."""

from __future__ import annotations

import logging
from typing import Any

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .exceptions import BookingEngineError, LockContentionError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)


def exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
	"""Translate booking engine errors into JSON responses."""

	if isinstance(exc, LockContentionError):
		return Response({'detail': exc.messages[0], 'code': exc.default_code}, status=status.HTTP_409_CONFLICT)
	if isinstance(exc, BookingEngineError):
		return Response({'detail': exc.messages[0], 'code': exc.default_code}, status=status.HTTP_400_BAD_REQUEST)
	if isinstance(exc, NotFoundError):
		return Response({'detail': str(exc) or 'Not found.', 'code': exc.code}, status=status.HTTP_404_NOT_FOUND)
	if isinstance(exc, UnauthorizedError):
		logger.info('Rejected %s: %s', context.get('view').__class__.__name__, exc)
		return Response(
			{'detail': str(exc) or 'You are not allowed to perform this action.', 'code': exc.code},
			status=status.HTTP_403_FORBIDDEN,
		)
	return drf_exception_handler(exc, context)
