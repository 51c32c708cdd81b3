from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
	list_display = (
		'reference',
		'kind',
		'amount',
		'method',
		'status',
		'recorded_by',
		'created_at',
	)
	search_fields = ('reference', 'recorded_by__email')
	list_filter = ('kind', 'status', 'created_at')
	readonly_fields = ('created_at', 'updated_at')
	raw_id_fields = ('recorded_by',)
