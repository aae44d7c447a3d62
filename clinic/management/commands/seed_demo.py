from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from clinic.models import DoctorProfile, Role, User

PASSWORD = "password123"

USERS = [
    ("admin@telehealth.local", "System Admin", Role.ADMIN),
    ("dr.sari@telehealth.local", "Sari Wulandari", Role.DOCTOR),
    ("dr.budi@telehealth.local", "Budi Santoso", Role.DOCTOR),
    ("patient@telehealth.local", "Andi Pratama", Role.PATIENT),
]

PROFILES = {
    "dr.sari@telehealth.local": dict(specialization="General Practitioner", license_number="STR-0001",
                                     experience_years=8, education="Universitas Indonesia",
                                     consultation_fee=Decimal("75000")),
    "dr.budi@telehealth.local": dict(specialization="Pediatrics", license_number="STR-0002",
                                     experience_years=12, education="Universitas Gadjah Mada",
                                     consultation_fee=Decimal("150000")),
}


class Command(BaseCommand):
    help = f"Create demo admin, doctors (with profiles) and a patient; password={PASSWORD} (idempotent)."

    @transaction.atomic
    def handle(self, *args, **opts):
        for email, name, role in USERS:
            user = User.objects.filter(email=email).first()
            if user is None:
                user = User.objects.create_user(email, PASSWORD, full_name=name, role=role,
                                                is_staff=role == Role.ADMIN)
            else:
                user.full_name, user.role, user.is_active = name, role, True
                user.set_password(PASSWORD)
                user.save()
            if email in PROFILES:
                DoctorProfile.objects.update_or_create(user=user, defaults=PROFILES[email])
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role})"))
        self.stdout.write(self.style.SUCCESS("Demo data ensured."))
