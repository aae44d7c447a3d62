"""
Accounts: self-service registration and login, profile maintenance and
the administrator's user and doctor-profile management.

Users are deactivated, never deleted.  Uniqueness (email, one doctor
profile per user, license number) is checked up front for a friendly
message and enforced again by the schema, whose ``IntegrityError`` is
reported as ``Conflict``.
"""
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q

from clinic.exceptions import Conflict, Forbidden, NotFound, Unauthorized, ValidationFailed
from clinic.models import DoctorProfile, Role
from clinic.services.audit import log_action

User = get_user_model()
logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = (Role.PATIENT, Role.DOCTOR)
PROFILE_FIELDS = ('full_name', 'phone', 'photo')
DOCTOR_FIELDS = ('specialization', 'experience_years', 'education', 'consultation_fee', 'is_available', 'bio')


def _create_user(*, email: str, password: str, full_name: str, phone: str = '', role: str = Role.PATIENT) -> User:
    email = email.strip().lower()
    if User.objects.filter(email__iexact=email).exists():
        raise Conflict('Email already registered')
    try:
        with transaction.atomic():
            return User.objects.create_user(email, password, full_name=full_name, phone=phone or '', role=role)
    except IntegrityError:
        raise Conflict('Email already registered')


def register(*, email: str, password: str, full_name: str, phone: str = '', role: str = Role.PATIENT,
             ip: Optional[str] = None) -> User:
    if role not in SELF_REGISTER_ROLES:
        raise ValidationFailed('Role must be PATIENT or DOCTOR')
    user = _create_user(email=email, password=password, full_name=full_name, phone=phone, role=role)
    log_action(user=user, action='register', object_type='user', object_id=user.id,
               detail={'role': user.role, 'ip': ip})
    return user


def authenticate_user(email: str, password: str, ip: Optional[str] = None) -> User:
    user = User.objects.select_related('doctor_profile').filter(email__iexact=(email or '').strip()).first()
    if user is None:
        # hash anyway so unknown emails take as long as wrong passwords
        User().set_password(password)
        ok = False
    else:
        ok = user.check_password(password)
    if not ok:
        logger.info('failed login for %s from %s', email, ip)
        log_action(user=None, action='login', object_type='user', object_id=getattr(user, 'id', None),
                   detail={'result': 'fail', 'ip': ip})
        raise Unauthorized('Invalid email or password')
    if not user.is_active:
        log_action(user=user, action='login', object_type='user', object_id=user.id,
                   detail={'result': 'inactive', 'ip': ip})
        raise Unauthorized('Account is deactivated')
    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': ip})
    return user


def update_profile(user: User, **fields) -> User:
    changed = [f for f in PROFILE_FIELDS if f in fields]
    for f in changed:
        setattr(user, f, fields[f] if fields[f] is not None else '')
    if changed:
        user.save(update_fields=changed + ['updated_at'])
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not user.check_password(current_password):
        raise ValidationFailed('Current password is incorrect')
    user.set_password(new_password)
    user.save(update_fields=['password', 'updated_at'])


# ---------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------
def list_users(*, role: Optional[str] = None, search: Optional[str] = None, page: int = 1, limit: int = 10):
    qs = User.objects.all()
    if role:
        qs = qs.filter(role=role)
    if search:
        qs = qs.filter(Q(full_name__icontains=search) | Q(email__icontains=search))
    total = qs.count()
    start = (page - 1) * limit
    items = list(qs.select_related('doctor_profile').order_by('-created_at', '-id')[start:start + limit])
    return items, total


def create_user(admin: User, **data) -> User:
    user = _create_user(**data)
    log_action(user=admin, action='user_create', object_type='user', object_id=user.id, detail={'role': user.role})
    return user


def get_user(user_id: int) -> User:
    user = User.objects.select_related('doctor_profile').filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found')
    return user


def update_user(admin: User, user_id: int, **fields) -> User:
    user = get_user(user_id)
    changed = [f for f in PROFILE_FIELDS if f in fields]
    for f in changed:
        setattr(user, f, fields[f] if fields[f] is not None else '')
    if 'is_active' in fields:
        if user.id == admin.id and not fields['is_active']:
            raise ValidationFailed('You cannot deactivate your own account')
        user.is_active = fields['is_active']
        changed.append('is_active')
    if changed:
        user.save(update_fields=changed + ['updated_at'])
        log_action(user=admin, action='user_update', object_type='user', object_id=user.id,
                   detail={'fields': changed})
    return user


def deactivate_user(admin: User, user_id: int) -> User:
    return update_user(admin, user_id, is_active=False)


def create_doctor_profile(admin: User, user_id: int, **data) -> DoctorProfile:
    user = User.objects.filter(pk=user_id, role=Role.DOCTOR).first()
    if user is None:
        raise NotFound('Doctor not found')
    if DoctorProfile.objects.filter(user=user).exists():
        raise Conflict('Doctor profile already exists')
    if DoctorProfile.objects.filter(license_number=data['license_number']).exists():
        raise Conflict('License number already registered')
    try:
        with transaction.atomic():
            profile = DoctorProfile.objects.create(user=user, **data)
    except IntegrityError:
        raise Conflict('Doctor profile already exists or license number is taken')
    log_action(user=admin, action='doctor_profile_create', object_type='doctor_profile', object_id=profile.id,
               detail={'userId': user.id})
    return profile


def update_doctor_profile(actor: User, user_id: int, **data) -> DoctorProfile:
    """Admins may edit any profile, a doctor only their own."""
    if not actor.is_admin and actor.id != user_id:
        raise Forbidden('You can only edit your own doctor profile')
    profile = DoctorProfile.objects.select_related('user').filter(user_id=user_id).first()
    if profile is None:
        raise NotFound('Doctor profile not found')
    changed = [f for f in DOCTOR_FIELDS if f in data]
    for f in changed:
        setattr(profile, f, data[f])
    if changed:
        profile.save(update_fields=changed + ['updated_at'])
    return profile
