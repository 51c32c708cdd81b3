"""Serializers for booking requests and booking records."""

from __future__ import annotations

from rest_framework import serializers

from .models import Booking, BookingRoom
from .services import BookingRequest, RoomLine


class BookingRoomSerializer(serializers.ModelSerializer):
    room_name = serializers.CharField(source='room.room_name', read_only=True)

    class Meta:
        model = BookingRoom
        fields = [
            'room',
            'room_name',
            'room_type',
            'quantity',
            'price_per_night',
            'effective_price',
            'price_source',
            'guest_name',
        ]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    hotel_name = serializers.CharField(source='hotel.name', read_only=True)
    guest_email = serializers.EmailField(source='guest.email', read_only=True)
    rooms = BookingRoomSerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id',
            'booking_code',
            'guest',
            'guest_email',
            'hotel',
            'hotel_name',
            'rooms',
            'check_in_date',
            'check_out_date',
            'nights',
            'adult_count',
            'child_count',
            'subtotal',
            'weekend_surcharge',
            'early_check_in_fee',
            'late_check_out_fee',
            'taxes',
            'service_fee',
            'discount',
            'total_price',
            'payment_method',
            'payment_status',
            'paid_amount',
            'paid_at',
            'booking_status',
            'special_requests',
            'early_check_in',
            'late_check_out',
            'cancellation_date',
            'cancellation_reason',
            'refund_amount',
            'refund_date',
            'created_at',
        ]
        read_only_fields = fields


class RoomLineSerializer(serializers.Serializer):
    room_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)
    price_per_night = serializers.IntegerField(min_value=0)
    guest_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')


class BookingCreateSerializer(serializers.Serializer):
    hotel_id = serializers.IntegerField(min_value=1)
    rooms = RoomLineSerializer(many=True, allow_empty=False)
    check_in_date = serializers.DateField()
    check_out_date = serializers.DateField()
    adult_count = serializers.IntegerField(min_value=1, default=1)
    child_count = serializers.IntegerField(min_value=0, default=0)
    early_check_in = serializers.BooleanField(default=False)
    late_check_out = serializers.BooleanField(default=False)
    payment_method = serializers.ChoiceField(choices=Booking.PaymentMethod.choices, default=Booking.PaymentMethod.AT_HOTEL)
    special_requests = serializers.CharField(required=False, allow_blank=True, default='')

    def to_request(self) -> BookingRequest:
        data = dict(self.validated_data)
        data['rooms'] = [RoomLine(**line) for line in data['rooms']]
        return BookingRequest(**data)


class BookingTransitionSerializer(serializers.Serializer):
    booking_status = serializers.ChoiceField(choices=Booking.BookingStatus.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class PaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=Booking.PaymentStatus.choices)
    paid_amount = serializers.IntegerField(min_value=0)
