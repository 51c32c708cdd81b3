from django.contrib import admin

from .models import PriceLock


@admin.register(PriceLock)
class PriceLockAdmin(admin.ModelAdmin):
	list_display = ('room', 'user', 'locked_price', 'expires_at', 'created_at')
	search_fields = ('room__room_name', 'room__hotel__name', 'user__email')
	list_filter = ('expires_at',)
	readonly_fields = ('created_at', 'updated_at')
	raw_id_fields = ('user', 'room')
