"""API views for price locks, effective prices and the price calendar."""

from __future__ import annotations

from rest_framework import generics, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .price_calendar import get_price_calendar
from .serializers import (
	EffectivePriceSerializer,
	PriceCalendarSerializer,
	PriceLockCreateSerializer,
	PriceLockSerializer,
)
from .services import cancel_lock, list_active_locks, lock_price, resolve_effective_price


class PriceLockListCreateView(generics.ListCreateAPIView):
	serializer_class = PriceLockSerializer
	filter_backends = []

	def get_queryset(self):
		return list_active_locks(self.request.user)

	def create(self, request, *args, **kwargs):
		payload = PriceLockCreateSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		price_lock = lock_price(
			request.user,
			payload.validated_data['room_id'],
			payload.validated_data['price'],
		)
		return Response(PriceLockSerializer(price_lock).data, status=status.HTTP_201_CREATED)


class PriceLockDetailView(APIView):
	def delete(self, request, pk: int):
		cancel_lock(request.user, pk)
		return Response(status=status.HTTP_204_NO_CONTENT)


class EffectivePriceView(APIView):
	permission_classes = [AllowAny]

	def get(self, request, room_id: int):
		effective = resolve_effective_price(request.user, room_id)
		return Response(EffectivePriceSerializer(effective).data)


class PriceCalendarView(APIView):
	permission_classes = [AllowAny]

	def get(self, request, room_id: int):
		price_calendar = get_price_calendar(room_id, request.query_params.get('month'))
		return Response(PriceCalendarSerializer(price_calendar).data)
