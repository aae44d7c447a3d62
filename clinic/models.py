"""
Database models for the telehealth backend.

A consultation is the aggregate root: it owns at most one payment and an
ordered stream of chat messages.  Uniqueness rules that guard against
concurrent double writes (one payment per consultation, one doctor
profile per user, unique license numbers and gateway order ids) live in
the schema rather than only in the services.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Role(models.TextChoices):
    PATIENT = 'PATIENT', 'Patient'
    DOCTOR = 'DOCTOR', 'Doctor'
    ADMIN = 'ADMIN', 'Admin'


class UserManager(BaseUserManager):
    """Manager for email-based accounts."""
    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', Role.ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """Account for patients, doctors and administrators.

    Accounts are never hard-deleted: deactivation flips ``is_active`` and
    the JWT authentication rejects inactive users.
    """
    email = models.EmailField(unique=True, max_length=255)
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=32, blank=True)
    photo = models.CharField(max_length=512, blank=True)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.PATIENT, db_index=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['full_name']

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"

    @property
    def is_doctor(self) -> bool:
        return self.role == Role.DOCTOR

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class DoctorProfile(models.Model):
    """Professional details of a doctor; exists only for DOCTOR users."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    specialization = models.CharField(max_length=255, db_index=True)
    license_number = models.CharField(max_length=64, unique=True)
    experience_years = models.PositiveIntegerField(default=0)
    education = models.CharField(max_length=255, blank=True)
    consultation_fee = models.DecimalField(max_digits=12, decimal_places=2)
    is_available = models.BooleanField(default=True, db_index=True)
    bio = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.user.full_name} - {self.specialization}"


class Consultation(models.Model):
    """A bounded engagement between one patient and one doctor."""

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        ACTIVE = 'ACTIVE', 'Active'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'

    patient = models.ForeignKey(User, on_delete=models.PROTECT, related_name='patient_consultations')
    doctor = models.ForeignKey(User, on_delete=models.PROTECT, related_name='doctor_consultations')
    title = models.CharField(max_length=255)
    description = models.TextField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    started_at = models.DateTimeField(blank=True, null=True)
    ended_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'created_at'], name='consult_patient_created_idx'),
            models.Index(fields=['doctor', 'status', 'created_at'], name='consult_doctor_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(patient=F('doctor')), name='consultation_patient_not_doctor'),
        ]

    def __str__(self) -> str:
        return f"consult {self.id} d={self.doctor_id} p={self.patient_id} [{self.status}]"

    def has_participant(self, user) -> bool:
        return getattr(user, 'id', None) in (self.patient_id, self.doctor_id)


class Payment(models.Model):
    """Local record of the single gateway payment for a consultation."""

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PAID = 'PAID', 'Paid'
        FAILED = 'FAILED', 'Failed'
        REFUNDED = 'REFUNDED', 'Refunded'

    # OneToOne gives the unique index that makes concurrent double-initiation fail
    consultation = models.OneToOneField(Consultation, on_delete=models.CASCADE, related_name='payment')
    payer = models.ForeignKey(User, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    gateway_order_id = models.CharField(max_length=64, unique=True)
    gateway_transaction_id = models.CharField(max_length=128, blank=True, null=True)
    payment_method = models.CharField(max_length=64, blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    raw_gateway_payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['payer', 'created_at'], name='payment_payer_created_idx')]

    def __str__(self) -> str:
        return f"payment {self.gateway_order_id} [{self.status}]"


class Message(models.Model):
    """A chat message inside a consultation; append-only apart from ``is_read``."""

    class Type(models.TextChoices):
        TEXT = 'TEXT', 'Text'
        IMAGE = 'IMAGE', 'Image'
        FILE = 'FILE', 'File'
        VOICE = 'VOICE', 'Voice'

    consultation = models.ForeignKey(Consultation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')
    content = models.TextField()
    message_type = models.CharField(max_length=8, choices=Type.choices, default=Type.TEXT)
    file_url = models.CharField(max_length=512, blank=True, null=True)
    file_name = models.CharField(max_length=255, blank=True, null=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['consultation', 'created_at', 'id'], name='message_consult_created_idx'),
            models.Index(fields=['consultation', 'is_read'], name='message_consult_read_idx'),
        ]

    def __str__(self) -> str:
        return f"msg {self.id} consult={self.consultation_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.BigIntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
