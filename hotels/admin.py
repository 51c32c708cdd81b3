from django.contrib import admin

from .models import Hotel, Room


class RoomInline(admin.TabularInline):
	model = Room
	extra = 0
	fields = ('room_name', 'room_type', 'base_price', 'weekend_surcharge', 'total_rooms', 'available_rooms', 'room_status')


@admin.register(Hotel)
class HotelAdmin(admin.ModelAdmin):
	list_display = ('name', 'location', 'owner', 'contact_email', 'is_active')
	search_fields = ('name', 'location', 'contact_email', 'owner__email')
	list_filter = ('is_active',)
	prepopulated_fields = {'slug': ('name',)}
	raw_id_fields = ('owner',)
	inlines = [RoomInline]


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
	list_display = (
		'room_name',
		'hotel',
		'room_type',
		'base_price',
		'available_rooms',
		'total_rooms',
		'room_status',
		'deal_active',
	)
	search_fields = ('room_name', 'room_number', 'hotel__name')
	list_filter = ('room_type', 'room_status', 'deal_active')
	readonly_fields = ('deal_original_price', 'deal_price', 'created_at', 'updated_at')
	autocomplete_fields = ('hotel',)
