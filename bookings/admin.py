from django.contrib import admin

from .models import Booking, BookingRoom


class BookingRoomInline(admin.TabularInline):
	model = BookingRoom
	extra = 0
	readonly_fields = ('room', 'room_type', 'quantity', 'price_per_night', 'effective_price', 'price_source')
	can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
	list_display = (
		'booking_code',
		'guest',
		'hotel',
		'check_in_date',
		'check_out_date',
		'booking_status',
		'payment_status',
		'total_price',
	)
	search_fields = ('booking_code', 'guest__email', 'hotel__name')
	list_filter = ('booking_status', 'payment_status', 'payment_method', 'check_in_date')
	readonly_fields = (
		'booking_code',
		'subtotal',
		'weekend_surcharge',
		'early_check_in_fee',
		'late_check_out_fee',
		'taxes',
		'service_fee',
		'discount',
		'total_price',
		'created_at',
		'updated_at',
	)
	raw_id_fields = ('guest', 'hotel')
	inlines = [BookingRoomInline]
