from django.contrib.auth import password_validation
from rest_framework import serializers

from clinic.models import Role
from clinic.serializers.common import clean_text
from clinic.serializers.users import UserFieldsMixin


class RegisterSerializer(UserFieldsMixin):
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(min_length=6, max_length=128, write_only=True)
    role = serializers.ChoiceField(choices=[Role.PATIENT, Role.DOCTOR], default=Role.PATIENT)

    def validate_password(self, v):
        password_validation.validate_password(v)
        return v


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class ProfileUpdateSerializer(serializers.Serializer):
    fullName = serializers.CharField(source='full_name', max_length=255, required=False)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    photo = serializers.CharField(required=False, allow_blank=True, max_length=512)

    def validate_fullName(self, v):
        v = clean_text(v)
        if len(v) < 2:
            raise serializers.ValidationError('Full name must be at least 2 characters')
        return v

    def validate_phone(self, v):
        return clean_text(v)


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField(source='current_password')
    newPassword = serializers.CharField(source='new_password', min_length=6, max_length=128)

    def validate_newPassword(self, v):
        password_validation.validate_password(v)
        return v


class RefreshSerializer(serializers.Serializer):
    refreshToken = serializers.CharField(source='refresh')
