"""Serializers for rooms and last-minute deals."""

from __future__ import annotations

from rest_framework import serializers

from .models import Room


class RoomSerializer(serializers.ModelSerializer):
    hotel_name = serializers.CharField(source='hotel.name', read_only=True)

    class Meta:
        model = Room
        fields = [
            'id',
            'hotel',
            'hotel_name',
            'room_type',
            'room_name',
            'room_number',
            'max_occupancy',
            'base_price',
            'weekend_surcharge',
            'total_rooms',
            'available_rooms',
            'room_status',
            'deal_active',
            'deal_discount_percent',
            'deal_original_price',
            'deal_price',
            'deal_valid_until',
        ]
        read_only_fields = fields


class DealSerializer(serializers.Serializer):
    discount_percent = serializers.IntegerField(min_value=1, max_value=99)
    valid_until = serializers.DateTimeField()
