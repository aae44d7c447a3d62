from rest_framework import serializers

from clinic.models import Consultation
from clinic.serializers.common import PageQuerySerializer, clean_text, iso
from clinic.serializers.message import message_data
from clinic.serializers.payment import payment_data
from clinic.serializers.users import doctor_profile_data, user_brief


def consultation_data(c: Consultation):
    data = {
        'id': c.id,
        'patientId': c.patient_id,
        'doctorId': c.doctor_id,
        'title': c.title,
        'description': c.description,
        'status': c.status,
        'startedAt': iso(c.started_at),
        'endedAt': iso(c.ended_at),
        'createdAt': iso(c.created_at),
        'updatedAt': iso(c.updated_at),
        'patient': user_brief(c.patient),
        'doctor': user_brief(c.doctor),
    }
    if hasattr(c, 'message_count'):
        data['messageCount'] = c.message_count
    return data


def consultation_detail_data(c: Consultation):
    data = consultation_data(c)
    data['messages'] = [message_data(m) for m in c.messages.all()]
    payment = getattr(c, 'payment_record', None)
    data['payment'] = payment_data(payment) if payment else None
    return data


def available_doctor_data(u):
    return {**user_brief(u), 'doctorProfile': doctor_profile_data(u.doctor_profile)}


class ConsultationCreateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(source='doctor_id', min_value=1)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(max_length=5000)

    def validate_title(self, v):
        v = clean_text(v)
        if len(v) < 3:
            raise serializers.ValidationError('Title must be at least 3 characters')
        return v

    def validate_description(self, v):
        v = clean_text(v)
        if len(v) < 10:
            raise serializers.ValidationError('Description must be at least 10 characters')
        return v


class ConsultationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Consultation.Status.values)


class ConsultationListQuerySerializer(PageQuerySerializer):
    status = serializers.ChoiceField(choices=Consultation.Status.values, required=False)


class AvailableDoctorsQuerySerializer(PageQuerySerializer):
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=128)
