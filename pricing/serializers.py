"""Serializers for price locks, effective prices and the price calendar."""

from __future__ import annotations

from rest_framework import serializers

from .models import PriceLock


class PriceLockSerializer(serializers.ModelSerializer):
    room_name = serializers.CharField(source='room.room_name', read_only=True)

    class Meta:
        model = PriceLock
        fields = ['id', 'room', 'room_name', 'locked_price', 'expires_at', 'created_at']
        read_only_fields = fields


class PriceLockCreateSerializer(serializers.Serializer):
    room_id = serializers.IntegerField(min_value=1)
    price = serializers.IntegerField(min_value=0)


class EffectivePriceSerializer(serializers.Serializer):
    price = serializers.IntegerField()
    source = serializers.CharField()
    discount_percent = serializers.IntegerField()
    is_locked = serializers.BooleanField()
    is_deal = serializers.BooleanField()
    lock_id = serializers.IntegerField(source='lock.pk', default=None)
    lock_expires_at = serializers.DateTimeField(source='lock.expires_at', default=None)


class DayPriceSerializer(serializers.Serializer):
    date = serializers.DateField()
    price = serializers.IntegerField()
    is_weekend = serializers.BooleanField()
    demand_level = serializers.CharField()
    booked_rooms = serializers.IntegerField()
    available_rooms = serializers.IntegerField()
    occupancy_rate = serializers.DecimalField(max_digits=5, decimal_places=4, coerce_to_string=False)


class PriceCalendarSerializer(serializers.Serializer):
    room_id = serializers.IntegerField(source='room.pk')
    room_name = serializers.CharField(source='room.room_name')
    month = serializers.DateField(format='%Y-%m')
    days = DayPriceSerializer(many=True)
    cheapest_date = serializers.DateField(source='cheapest_date.date')
    most_expensive_date = serializers.DateField(source='most_expensive_date.date')
    average_price = serializers.IntegerField()
    savings = serializers.IntegerField()
