"""URL configuration for the hospitality booking engine."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('hotels.urls')),
    path('api/', include('pricing.urls')),
    path('api/', include('bookings.urls')),
]
