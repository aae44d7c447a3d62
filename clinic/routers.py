"""
URL mappings for the telehealth API.

All endpoints live under ``/api``; trailing slashes are omitted
(``APPEND_SLASH = False``).  Prometheus metrics are served at ``/metrics``.
"""
from django.urls import include, path

from .views import auth, consult, health, messages, payments, upload, users

urlpatterns = [
    # accounts
    path('api/auth/register', auth.register, name='auth-register'),
    path('api/auth/login', auth.login, name='auth-login'),
    path('api/auth/refresh', auth.refresh, name='auth-refresh'),
    path('api/auth/profile', auth.profile, name='auth-profile'),
    path('api/auth/change-password', auth.change_password, name='auth-change-password'),

    # user administration
    path('api/users', users.user_collection, name='users'),
    path('api/users/<int:pk>', users.user_detail, name='user-detail'),
    path('api/users/<int:pk>/doctor-profile', users.doctor_profile, name='user-doctor-profile'),

    # consultations
    path('api/consultations/doctors/available', consult.available_doctors, name='doctors-available'),
    path('api/consultations', consult.consultation_collection, name='consultations'),
    path('api/consultations/<int:pk>', consult.consultation_detail, name='consultation-detail'),
    path('api/consultations/<int:pk>/status', consult.consultation_status, name='consultation-status'),

    # payments
    path('api/payments', payments.create_payment, name='payments'),
    path('api/payments/history', payments.history, name='payment-history'),
    path('api/payments/webhook', payments.webhook, name='payment-webhook'),
    path('api/payments/<int:pk>/status', payments.payment_status, name='payment-status'),

    # messages
    path('api/messages', messages.send_message, name='messages'),
    path('api/messages/consultation/<int:pk>', messages.consultation_messages, name='consultation-messages'),
    path('api/messages/consultation/<int:pk>/read', messages.mark_read, name='consultation-messages-read'),
    path('api/messages/unread/count', messages.unread_count, name='messages-unread-count'),
    path('api/messages/<int:pk>', messages.delete_message, name='message-detail'),

    path('api/upload', upload.upload_file, name='upload'),
    path('api/health', health.health, name='health'),

    # django-prometheus registers its own 'metrics' path
    path('', include('django_prometheus.urls')),
]
