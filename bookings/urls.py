"""URL configuration for the booking lifecycle API."""

from django.urls import path

from .views import (
    BookingCancelView,
    BookingDetailView,
    BookingListCreateView,
    BookingPaymentView,
    BookingStatusView,
    HotelBookingListView,
)

app_name = 'bookings'

urlpatterns = [
    path('bookings/', BookingListCreateView.as_view(), name='booking-list'),
    path('bookings/<int:pk>/', BookingDetailView.as_view(), name='booking-detail'),
    path('bookings/<int:pk>/status/', BookingStatusView.as_view(), name='booking-status'),
    path('bookings/<int:pk>/cancel/', BookingCancelView.as_view(), name='booking-cancel'),
    path('bookings/<int:pk>/payment/', BookingPaymentView.as_view(), name='booking-payment'),
    path('hotels/<int:hotel_id>/bookings/', HotelBookingListView.as_view(), name='hotel-booking-list'),
]
