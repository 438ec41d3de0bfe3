from django.contrib import admin
from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'name', 'role', 'blood_group', 'is_donor', 'is_verified', 'can_donate_display')
    search_fields = ('email', 'name', 'username', 'city')
    list_filter = ('role', 'blood_group', 'is_donor', 'is_verified')
    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        ('Account', {
            'fields': ('username', 'email', 'name', 'phone', 'is_active')
        }),
        ('Role', {
            'fields': ('role', 'is_verified', 'facility_id')
        }),
        ('Donor', {
            'fields': ('blood_group', 'is_donor', 'is_recipient', 'last_donation_date', 'alert_snooze_until')
        }),
        ('Location', {
            'fields': ('location', 'city', 'state', 'latitude', 'longitude')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    @admin.display(boolean=True, description='Can Donate Now')
    def can_donate_display(self, obj):
        return obj.can_donate
