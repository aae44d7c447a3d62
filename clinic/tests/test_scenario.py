"""A full consultation from booking to completion, driven through the API."""
import pytest
from rest_framework.test import APIClient

from clinic.models import Consultation, Message, Payment

from .fakes import notification

pytestmark = pytest.mark.django_db


def test_book_pay_chat_and_close(api, patient, doctor, gateway, relay):
    as_patient, as_doctor = api(patient), api(doctor)

    r = as_patient.get('/api/consultations/doctors/available')
    fee = next(d for d in r.data['data']['doctors'] if d['id'] == doctor.id)['doctorProfile']['consultationFee']
    assert fee == '75000.00'

    r = as_patient.post('/api/consultations', {
        'doctorId': doctor.id, 'title': 'Batuk pilek', 'description': 'Batuk dan pilek sejak kemarin',
    }, format='json')
    assert r.status_code == 201, r.data
    cid = r.data['data']['id']
    assert r.data['data']['status'] == 'PENDING'

    r = as_patient.post('/api/payments', {'consultationId': cid}, format='json')
    assert r.status_code == 201
    order_id = r.data['data']['payment']['orderId']

    # nothing can be said before the doctor opens the consultation
    r = as_patient.post('/api/messages', {'consultationId': cid, 'content': 'halo'}, format='json')
    assert r.data['code'] == 'precondition_failed'

    r = APIClient().post('/api/payments/webhook', notification(order_id, 'settlement'), format='json')
    assert r.data['data']['paymentStatus'] == 'PAID'
    assert Payment.objects.get(gateway_order_id=order_id).status == Payment.Status.PAID
    assert Consultation.objects.get(pk=cid).status == Consultation.Status.PENDING

    r = as_doctor.put(f'/api/consultations/{cid}/status', {'status': 'ACTIVE'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['startedAt'] is not None

    r = as_patient.post('/api/messages', {'consultationId': cid, 'content': 'Dok, saya demam'}, format='json')
    assert r.status_code == 201
    r = as_doctor.post('/api/messages', {'consultationId': cid, 'content': 'Sudah minum obat?'}, format='json')
    assert r.status_code == 201

    r = as_doctor.put(f'/api/consultations/{cid}/status', {'status': 'COMPLETED'}, format='json')
    assert r.data['data']['endedAt'] is not None

    r = as_patient.post('/api/messages', {'consultationId': cid, 'content': 'terima kasih'}, format='json')
    assert r.status_code == 400
    assert r.data['code'] == 'precondition_failed'

    r = as_patient.get(f'/api/consultations/{cid}')
    assert [m['content'] for m in r.data['data']['messages']] == ['Dok, saya demam', 'Sudah minum obat?']
    assert r.data['data']['payment']['status'] == 'PAID'
    assert Message.objects.filter(consultation_id=cid).count() == 2
    assert relay.names() == ['consultation.status', 'message.new', 'message.new', 'consultation.status']


def test_double_initiation_keeps_one_payment(api, patient, consultation, gateway):
    client = api(patient)
    codes = [client.post('/api/payments', {'consultationId': consultation.id}, format='json').status_code
             for _ in range(2)]
    assert codes == [201, 409]
    assert Payment.objects.filter(consultation=consultation).count() == 1
