from rest_framework import serializers

from clinic.models import DoctorProfile, Role
from clinic.serializers.common import PageQuerySerializer, clean_text, iso


def doctor_profile_data(p: DoctorProfile):
    if p is None:
        return None
    return {
        'id': p.id,
        'userId': p.user_id,
        'specialization': p.specialization,
        'licenseNumber': p.license_number,
        'experienceYears': p.experience_years,
        'education': p.education,
        'consultationFee': str(p.consultation_fee),
        'isAvailable': p.is_available,
        'bio': p.bio,
        'createdAt': iso(p.created_at),
        'updatedAt': iso(p.updated_at),
    }


def user_brief(u):
    return {'id': u.id, 'fullName': u.full_name, 'email': u.email, 'photo': u.photo or None}


def user_data(u, *, with_profile=True):
    data = {
        'id': u.id,
        'email': u.email,
        'fullName': u.full_name,
        'phone': u.phone or None,
        'photo': u.photo or None,
        'role': u.role,
        'isActive': u.is_active,
        'createdAt': iso(u.created_at),
        'updatedAt': iso(u.updated_at),
    }
    if with_profile:
        data['doctorProfile'] = doctor_profile_data(getattr(u, 'doctor_profile', None)) if u.role == Role.DOCTOR else None
    return data


class UserFieldsMixin(serializers.Serializer):
    fullName = serializers.CharField(source='full_name', max_length=255)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)

    def validate_fullName(self, v):
        v = clean_text(v)
        if len(v) < 2:
            raise serializers.ValidationError('Full name must be at least 2 characters')
        return v

    def validate_phone(self, v):
        return clean_text(v)


class UserCreateSerializer(UserFieldsMixin):
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(min_length=6, max_length=128, write_only=True)
    role = serializers.ChoiceField(choices=Role.values, default=Role.PATIENT)


class UserUpdateSerializer(serializers.Serializer):
    fullName = serializers.CharField(source='full_name', max_length=255, required=False)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    photo = serializers.CharField(required=False, allow_blank=True, max_length=512)
    isActive = serializers.BooleanField(source='is_active', required=False)

    def validate_fullName(self, v):
        v = clean_text(v)
        if len(v) < 2:
            raise serializers.ValidationError('Full name must be at least 2 characters')
        return v

    def validate_phone(self, v):
        return clean_text(v)


class UserListQuerySerializer(PageQuerySerializer):
    role = serializers.ChoiceField(choices=Role.values, required=False)
    search = serializers.CharField(required=False, allow_blank=True, max_length=64)


class DoctorProfileUpdateSerializer(serializers.Serializer):
    specialization = serializers.CharField(max_length=255, required=False)
    experienceYears = serializers.IntegerField(source='experience_years', min_value=0, max_value=80, required=False)
    education = serializers.CharField(max_length=255, required=False, allow_blank=True)
    consultationFee = serializers.DecimalField(source='consultation_fee', max_digits=12, decimal_places=2,
                                               min_value=0, required=False)
    isAvailable = serializers.BooleanField(source='is_available', required=False)
    bio = serializers.CharField(required=False, allow_blank=True, max_length=5000)

    def validate_specialization(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Specialization is required')
        return v

    def validate_bio(self, v):
        return clean_text(v)


class DoctorProfileCreateSerializer(DoctorProfileUpdateSerializer):
    specialization = serializers.CharField(max_length=255)
    licenseNumber = serializers.CharField(source='license_number', max_length=64)
    consultationFee = serializers.DecimalField(source='consultation_fee', max_digits=12, decimal_places=2, min_value=0)

    def validate_licenseNumber(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('License number is required')
        return v
