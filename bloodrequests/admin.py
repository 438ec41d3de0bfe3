from django.contrib import admin
from .models import BloodRequest


@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = ['patient_name', 'blood_group', 'units_required', 'urgency_level', 'status', 'verification_status', 'created_at']
    list_filter = ['status', 'urgency_level', 'blood_group', 'verification_status']
    search_fields = ['patient_name', 'hospital_name', 'requester__email']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at', 'verified_at']
