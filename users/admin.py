from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import User

@admin.register(User)
class CustomUserAdmin(UserAdmin):
    list_display = ('username', 'email', 'full_name', 'role', 'is_active', 'is_staff')
    list_filter = ('role', 'is_staff', 'is_superuser', 'is_active')
    search_fields = ('username', 'email', 'full_name')
    fieldsets = UserAdmin.fieldsets + (
        ('Crew', {'fields': ('role', 'full_name', 'phone', 'bio', 'avatar_url', 'skills', 'availability', 'deactivated_at')}),
        ('Address', {'fields': ('postal_code', 'street', 'city', 'region')}),
    )
    add_fieldsets = UserAdmin.add_fieldsets + (
        ('Crew', {'fields': ('role', 'full_name', 'phone')}),
    )
