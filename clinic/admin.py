"""
Django admin registrations for the clinic models.

Payments and audit events are read-mostly: their state is owned by
reconciliation and the services, so the admin shows them without
letting operators edit gateway fields.
"""
from django.contrib import admin

from .models import AuditEvent, Consultation, DoctorProfile, Message, Payment, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'full_name', 'role', 'is_active', 'created_at')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'full_name', 'phone')
    exclude = ('password',)


@admin.register(DoctorProfile)
class DoctorProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'specialization', 'license_number', 'consultation_fee', 'is_available')
    list_filter = ('is_available', 'specialization')
    search_fields = ('user__email', 'user__full_name', 'license_number')


@admin.register(Consultation)
class ConsultationAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'patient', 'doctor', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('title', 'patient__email', 'doctor__email')


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('gateway_order_id', 'consultation', 'payer', 'amount', 'status', 'paid_at')
    list_filter = ('status',)
    search_fields = ('gateway_order_id', 'gateway_transaction_id', 'payer__email')
    readonly_fields = ('gateway_order_id', 'gateway_transaction_id', 'payment_method', 'paid_at',
                       'raw_gateway_payload')


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'consultation', 'sender', 'message_type', 'is_read', 'created_at')
    list_filter = ('message_type', 'is_read')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'user', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
    search_fields = ('user__email',)
