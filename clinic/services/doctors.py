from typing import Optional

from django.contrib.auth import get_user_model

from clinic.models import Role

User = get_user_model()


def list_available_doctors(*, specialization: Optional[str] = None, page: int = 1, limit: int = 10):
    """Active doctors with an available profile, optionally filtered by specialization."""
    qs = User.objects.filter(role=Role.DOCTOR, is_active=True, doctor_profile__is_available=True)
    if specialization:
        qs = qs.filter(doctor_profile__specialization__icontains=specialization)
    total = qs.count()
    start = (page - 1) * limit
    items = list(qs.select_related('doctor_profile').order_by('full_name', 'id')[start:start + limit])
    return items, total
