"""API views for the booking lifecycle."""

from __future__ import annotations

from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
	BookingCancelSerializer,
	BookingCreateSerializer,
	BookingSerializer,
	BookingTransitionSerializer,
	PaymentStatusSerializer,
)
from .services import (
	cancel_booking,
	create_booking,
	get_booking,
	list_guest_bookings,
	list_hotel_bookings,
	transition_booking,
	update_payment_status,
)


class BookingFilterMixin:
	filterset_fields = ['booking_status', 'payment_status']
	ordering_fields = ['created_at', 'check_in_date', 'total_price']
	ordering = ['-created_at']


class BookingListCreateView(BookingFilterMixin, generics.ListCreateAPIView):
	serializer_class = BookingSerializer

	def get_queryset(self):
		return list_guest_bookings(self.request.user)

	def create(self, request, *args, **kwargs):
		payload = BookingCreateSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		booking = create_booking(request.user, payload.to_request())
		booking = get_booking(booking.pk, request.user)
		return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


class BookingDetailView(APIView):
	def get(self, request, pk: int):
		return Response(BookingSerializer(get_booking(pk, request.user)).data)


class BookingStatusView(APIView):
	def post(self, request, pk: int):
		payload = BookingTransitionSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		transition_booking(
			pk,
			payload.validated_data['booking_status'],
			request.user,
			reason=payload.validated_data['reason'],
		)
		return Response(BookingSerializer(get_booking(pk, request.user)).data)


class BookingCancelView(APIView):
	def post(self, request, pk: int):
		payload = BookingCancelSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		cancel_booking(pk, payload.validated_data['reason'], request.user)
		return Response(BookingSerializer(get_booking(pk, request.user)).data)


class BookingPaymentView(APIView):
	def post(self, request, pk: int):
		payload = PaymentStatusSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		update_payment_status(
			pk,
			payload.validated_data['payment_status'],
			payload.validated_data['paid_amount'],
			request.user,
		)
		return Response(BookingSerializer(get_booking(pk, request.user)).data)


class HotelBookingListView(BookingFilterMixin, generics.ListAPIView):
	serializer_class = BookingSerializer

	def get_queryset(self):
		return list_hotel_bookings(self.kwargs['hotel_id'], self.request.user)
