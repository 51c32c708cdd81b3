"""URL configuration for price locks and price lookups."""

from django.urls import path

from .views import (
    EffectivePriceView,
    PriceCalendarView,
    PriceLockDetailView,
    PriceLockListCreateView,
)

app_name = 'pricing'

urlpatterns = [
    path('price-locks/', PriceLockListCreateView.as_view(), name='price-lock-list'),
    path('price-locks/<int:pk>/', PriceLockDetailView.as_view(), name='price-lock-detail'),
    path('rooms/<int:room_id>/effective-price/', EffectivePriceView.as_view(), name='effective-price'),
    path('rooms/<int:room_id>/price-calendar/', PriceCalendarView.as_view(), name='price-calendar'),
]
