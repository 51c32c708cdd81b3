from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
	list_display = ('email', 'first_name', 'last_name', 'member_type', 'member_status', 'is_staff')
	search_fields = ('email', 'first_name', 'last_name')
	list_filter = ('member_type', 'member_status', 'is_staff')
	ordering = ('email',)
	filter_horizontal = ('groups', 'user_permissions')
	fieldsets = (
		(None, {'fields': ('email', 'password')}),
		('Personal info', {'fields': ('first_name', 'last_name', 'phone_number')}),
		('Membership', {'fields': ('member_type', 'member_status')}),
		('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
		('Important dates', {'fields': ('last_login', 'date_joined')}),
	)
	add_fieldsets = (
		(
			None,
			{
				'classes': ('wide',),
				'fields': ('email', 'password1', 'password2', 'member_type', 'is_staff', 'is_superuser'),
			},
		),
	)
