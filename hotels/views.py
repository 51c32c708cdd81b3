"""API views for room inventory and last-minute deals."""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import DealSerializer, RoomSerializer
from .services import create_last_minute_deal, expire_last_minute_deal, get_room, require_room_operator


class RoomDealView(APIView):
	"""Activate or end a last-minute deal on a room the caller operates."""

	def post(self, request, room_id: int):
		require_room_operator(get_room(room_id), request.user)
		payload = DealSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		room = create_last_minute_deal(
			room_id,
			payload.validated_data['discount_percent'],
			payload.validated_data['valid_until'],
		)
		return Response(RoomSerializer(room).data, status=status.HTTP_201_CREATED)

	def delete(self, request, room_id: int):
		require_room_operator(get_room(room_id), request.user)
		expire_last_minute_deal(room_id)
		return Response(status=status.HTTP_204_NO_CONTENT)
