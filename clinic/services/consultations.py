"""
Consultation lifecycle.

    PENDING -> ACTIVE -> COMPLETED
    PENDING | ACTIVE -> CANCELLED

Status writes are conditional on the status that was read, so two
concurrent transitions cannot both succeed from the same state.
"""
from typing import Optional

from django.contrib.auth import get_user_model
from django.db.models import Count, DateTimeField, F, Prefetch, Q, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from clinic.exceptions import Forbidden, InvalidTransition, NotFound
from clinic.models import Consultation, DoctorProfile, Message, Payment, Role
from clinic.realtime.relay import get_relay
from clinic.services.audit import log_action

User = get_user_model()

Status = Consultation.Status

TRANSITIONS = {
    Status.PENDING: {Status.ACTIVE, Status.CANCELLED},
    Status.ACTIVE: {Status.COMPLETED, Status.CANCELLED},
    Status.COMPLETED: set(),
    Status.CANCELLED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


def _visible_to(user: User):
    qs = Consultation.objects.all()
    if user.is_admin:
        return qs
    if user.is_doctor:
        return qs.filter(doctor=user)
    return qs.filter(patient=user)


def create_consultation(patient: User, *, doctor_id: int, title: str, description: str) -> Consultation:
    doctor = User.objects.filter(pk=doctor_id, role=Role.DOCTOR, is_active=True).first()
    profile = DoctorProfile.objects.filter(user_id=doctor_id).first() if doctor else None
    if doctor is None or profile is None:
        raise NotFound('Doctor not found or not available')
    if not profile.is_available:
        raise NotFound('Doctor is currently not available')

    consultation = Consultation.objects.create(
        patient=patient, doctor=doctor, title=title, description=description,
    )
    log_action(user=patient, action='consultation_create', object_type='consultation',
               object_id=consultation.id, detail={'doctorId': doctor.id})
    return consultation


def transition_consultation(user: User, consultation_id: int, new_status: str, relay=None) -> Consultation:
    try:
        consultation = Consultation.objects.get(pk=consultation_id)
    except Consultation.DoesNotExist:
        raise NotFound('Consultation not found')
    if not (user.is_admin or consultation.doctor_id == user.id):
        raise Forbidden('Only the assigned doctor can update this consultation')

    current = consultation.status
    if not can_transition(current, new_status):
        raise InvalidTransition(f'Cannot change status from {current} to {new_status}')

    now = timezone.now()
    fields = {'status': new_status, 'updated_at': now}
    # an existing timestamp is never overwritten
    if new_status == Status.ACTIVE:
        fields['started_at'] = Coalesce(F('started_at'), Value(now, output_field=DateTimeField()))
    elif new_status == Status.COMPLETED:
        fields['ended_at'] = Coalesce(F('ended_at'), Value(now, output_field=DateTimeField()))

    updated = Consultation.objects.filter(pk=consultation.pk, status=current).update(**fields)
    if not updated:
        consultation.refresh_from_db(fields=['status'])
        raise InvalidTransition(f'Cannot change status from {consultation.status} to {new_status}')

    consultation.refresh_from_db()
    log_action(user=user, action='consultation_status', object_type='consultation',
               object_id=consultation.id, detail={'from': current, 'to': new_status})

    relay = relay or get_relay()
    relay.broadcast(consultation.id, 'consultation.status', {
        'consultationId': consultation.id,
        'status': consultation.status,
        'previousStatus': current,
        'startedAt': consultation.started_at.isoformat() if consultation.started_at else None,
        'endedAt': consultation.ended_at.isoformat() if consultation.ended_at else None,
        'updatedBy': user.id,
    })
    return consultation


def list_consultations(user: User, *, status: Optional[str] = None, page: int = 1, limit: int = 10):
    qs = _visible_to(user)
    if status:
        qs = qs.filter(status=status)
    total = qs.count()
    start = (page - 1) * limit
    items = list(
        qs.select_related('patient', 'doctor')
        .annotate(message_count=Count('messages'))
        .order_by('-created_at', '-id')[start:start + limit]
    )
    return items, total


def get_consultation_detail(user: User, consultation_id: int) -> Consultation:
    """Consultation with its messages (oldest first) and payment, scoped to ``user``."""
    messages = Message.objects.select_related('sender').order_by('created_at', 'id')
    consultation = (
        _visible_to(user)
        .select_related('patient', 'doctor')
        .prefetch_related(Prefetch('messages', queryset=messages))
        .filter(pk=consultation_id)
        .first()
    )
    if consultation is None:
        raise NotFound('Consultation not found')
    consultation.payment_record = Payment.objects.filter(consultation=consultation).first()
    return consultation


def participant_consultation(user: User, consultation_id: int) -> Consultation:
    """Return the consultation if ``user`` is its patient or doctor, else ``NotFound``."""
    consultation = (
        Consultation.objects.filter(pk=consultation_id)
        .filter(Q(patient=user) | Q(doctor=user))
        .first()
    )
    if consultation is None:
        raise NotFound('Consultation not found')
    return consultation
