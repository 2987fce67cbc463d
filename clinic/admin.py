"""
Django admin registrations for the clinic models.

Superusers can inspect and correct records through ``/admin/``.  Bills
show their items and payments inline; derived money fields are read
only so that edits go through the API, which keeps them consistent.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AuditEvent,
    Bed,
    Bill,
    BillItem,
    FollowUp,
    Medication,
    Patient,
    Payment,
    Prescription,
    User,
    Ward,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'staff_id', 'specialization', 'status', 'is_superuser')
    list_filter = ('role', 'status')
    search_fields = ('username', 'email', 'first_name', 'last_name', 'staff_id')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_code', 'name', 'age', 'gender', 'contact', 'status', 'created_at')
    list_filter = ('status', 'gender')
    search_fields = ('patient_code', 'name', 'contact')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'date', 'time', 'doctor', 'patient', 'status')
    list_filter = ('status', 'date')
    search_fields = ('patient__name', 'doctor__username', 'doctor__first_name')


class MedicationInline(admin.TabularInline):
    model = Medication
    extra = 0


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'appointment', 'prescribed_by', 'created_at')
    inlines = [MedicationInline]


@admin.register(FollowUp)
class FollowUpAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'follow_up_date', 'notified')
    list_filter = ('notified',)


@admin.register(Ward)
class WardAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'capacity', 'current_occupancy', 'floor')
    list_filter = ('type',)
    readonly_fields = ('current_occupancy',)


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ('bed_number', 'ward', 'status', 'patient', 'admission_date')
    list_filter = ('status', 'ward')
    search_fields = ('bed_number', 'patient__name')


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'billing_date', 'total_amount', 'paid_amount', 'balance', 'status')
    list_filter = ('status',)
    search_fields = ('patient__name', 'patient__patient_code')
    readonly_fields = ('subtotal', 'total_amount', 'paid_amount', 'balance')
    inlines = [BillItemInline, PaymentInline]


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'object_type', 'object_id', 'user')
    list_filter = ('action', 'object_type')
