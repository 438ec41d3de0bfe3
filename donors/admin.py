from django.contrib import admin
from .models import Donation


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ['donor', 'blood_group', 'donation_date', 'units_donated', 'status', 'donation_center']
    list_filter = ['status', 'blood_group', 'donation_date']
    search_fields = ['donor__name', 'donor__email', 'donation_center']
    ordering = ['-donation_date']
    readonly_fields = ['created_at', 'updated_at']
