"""URL configuration for room management."""

from django.urls import path

from .views import RoomDealView

app_name = 'hotels'

urlpatterns = [
    path('rooms/<int:room_id>/deal/', RoomDealView.as_view(), name='room-deal'),
]
