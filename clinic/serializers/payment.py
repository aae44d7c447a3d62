from rest_framework import serializers

from clinic.models import Payment
from clinic.serializers.common import PageQuerySerializer, iso


def payment_data(p: Payment, *, with_consultation=False):
    data = {
        'id': p.id,
        'consultationId': p.consultation_id,
        'payerId': p.payer_id,
        'amount': str(p.amount),
        'status': p.status,
        'orderId': p.gateway_order_id,
        'transactionId': p.gateway_transaction_id,
        'paymentMethod': p.payment_method,
        'paidAt': iso(p.paid_at),
        'createdAt': iso(p.created_at),
        'updatedAt': iso(p.updated_at),
    }
    if with_consultation:
        c = p.consultation
        data['consultation'] = {
            'id': c.id,
            'title': c.title,
            'status': c.status,
            'doctor': {'id': c.doctor_id, 'fullName': c.doctor.full_name},
        }
    return data


class PaymentCreateSerializer(serializers.Serializer):
    consultationId = serializers.IntegerField(source='consultation_id', min_value=1)


class PaymentHistoryQuerySerializer(PageQuerySerializer):
    status = serializers.ChoiceField(choices=Payment.Status.values, required=False)
