from decimal import Decimal

import pytest

from clinic.exceptions import NotFound, PaymentRequired, PreconditionFailed, ValidationFailed
from clinic.models import Consultation, Message, Payment
from clinic.services.messaging import MessagingGate

pytestmark = pytest.mark.django_db

C = Consultation.Status
P = Payment.Status


@pytest.mark.parametrize('consultation_status', C.values)
@pytest.mark.parametrize('payment_status', [None] + P.values)
def test_gate_admits_only_active_and_paid(consultation, relay, consultation_status, payment_status):
    Consultation.objects.filter(pk=consultation.pk).update(status=consultation_status)
    if payment_status is not None:
        Payment.objects.create(consultation=consultation, payer=consultation.patient, amount=Decimal('75000'),
                               status=payment_status, gateway_order_id='ORDER-1-GATECHECK')
    gate = MessagingGate(relay)

    if consultation_status != C.ACTIVE:
        with pytest.raises(PreconditionFailed):
            gate.send(consultation.patient, consultation.id, 'halo dok')
    elif payment_status != P.PAID:
        with pytest.raises(PaymentRequired):
            gate.send(consultation.patient, consultation.id, 'halo dok')
    else:
        msg = gate.send(consultation.patient, consultation.id, 'halo dok')
        assert msg.pk and msg.is_read is False
    expected = 1 if (consultation_status == C.ACTIVE and payment_status == P.PAID) else 0
    assert Message.objects.count() == expected
    assert len(relay.events) == expected


def test_send_persists_and_relays(paid_active_consultation, relay):
    c = paid_active_consultation
    msg = MessagingGate(relay).send(c.doctor, c.id, '  <b>Minum</b> obat 3x sehari  ')
    assert msg.content == 'Minum obat 3x sehari'
    assert msg.sender_id == c.doctor_id
    consultation_id, event, payload = relay.events[0]
    assert (consultation_id, event) == (c.id, 'message.new')
    assert payload['id'] == msg.id
    assert payload['sender']['role'] == 'DOCTOR'


def test_relay_failure_does_not_fail_send(paid_active_consultation):
    class BrokenLayer:
        async def group_send(self, group, message):
            raise ConnectionError('redis down')

    from clinic.realtime.relay import ConsultationRelay

    c = paid_active_consultation
    msg = MessagingGate(ConsultationRelay(BrokenLayer())).send(c.patient, c.id, 'tetap tersimpan')
    assert Message.objects.filter(pk=msg.pk).exists()


def test_non_participant_gets_not_found(paid_active_consultation, other_patient, other_doctor, relay):
    gate = MessagingGate(relay)
    for outsider in (other_patient, other_doctor):
        with pytest.raises(NotFound):
            gate.send(outsider, paid_active_consultation.id, 'boleh ikut?')


@pytest.mark.parametrize('content', ['', '   ', '<b></b>', 'x' * 5001])
def test_content_is_validated(paid_active_consultation, relay, content):
    with pytest.raises(ValidationFailed):
        MessagingGate(relay).send(paid_active_consultation.patient, paid_active_consultation.id, content)


def test_send_over_api(api, paid_active_consultation, relay):
    c = paid_active_consultation
    r = api(c.patient).post('/api/messages', {'consultationId': c.id, 'content': 'Selamat pagi dok'}, format='json')
    assert r.status_code == 201, r.data
    assert r.data['data']['content'] == 'Selamat pagi dok'
    assert r.data['data']['messageType'] == 'TEXT'
    assert relay.names() == ['message.new']


def test_file_message_needs_url(api, paid_active_consultation, relay):
    c = paid_active_consultation
    r = api(c.patient).post('/api/messages', {'consultationId': c.id, 'content': 'hasil lab',
                                              'messageType': 'FILE'}, format='json')
    assert r.status_code == 400
    assert r.data['code'] == 'validation_failed'
    r = api(c.patient).post('/api/messages', {
        'consultationId': c.id, 'content': 'hasil lab', 'messageType': 'FILE',
        'fileUrl': '/media/uploads/documents/lab.pdf', 'fileName': 'lab.pdf',
    }, format='json')
    assert r.status_code == 201
    assert r.data['data']['fileName'] == 'lab.pdf'


def test_gate_errors_over_api(api, consultation, relay):
    r = api(consultation.patient).post('/api/messages', {'consultationId': consultation.id, 'content': 'halo'},
                                       format='json')
    assert r.status_code == 400
    assert r.data['code'] == 'precondition_failed'

    Consultation.objects.filter(pk=consultation.pk).update(status=C.ACTIVE)
    r = api(consultation.patient).post('/api/messages', {'consultationId': consultation.id, 'content': 'halo'},
                                       format='json')
    assert r.status_code == 400
    assert r.data['code'] == 'payment_required'


def test_list_pages_from_newest_and_marks_read(api, paid_active_consultation):
    c = paid_active_consultation
    msgs = [Message.objects.create(consultation=c, sender=c.patient if i % 2 else c.doctor, content=f'm{i}')
            for i in range(5)]

    r = api(c.patient).get(f'/api/messages/consultation/{c.id}?page=1&limit=2')
    assert r.status_code == 200
    assert [m['content'] for m in r.data['data']['messages']] == ['m3', 'm4']
    assert r.data['data']['pagination'] == {'currentPage': 1, 'totalPages': 3, 'totalCount': 5, 'limit': 2}

    r = api(c.patient).get(f'/api/messages/consultation/{c.id}?page=3&limit=2')
    assert [m['content'] for m in r.data['data']['messages']] == ['m0']

    # messages from the doctor are now read, the patient's own are untouched
    for m in msgs:
        m.refresh_from_db()
        assert m.is_read == (m.sender_id == c.doctor_id)


def test_list_outside_scope(api, paid_active_consultation, other_patient):
    r = api(other_patient).get(f'/api/messages/consultation/{paid_active_consultation.id}')
    assert r.status_code == 404


def test_unread_count_counts_only_others_unread(api, paid_active_consultation, doctor, other_patient):
    c = paid_active_consultation
    Message.objects.create(consultation=c, sender=c.doctor, content='a')
    Message.objects.create(consultation=c, sender=c.doctor, content='b')
    Message.objects.create(consultation=c, sender=c.doctor, content='c', is_read=True)
    Message.objects.create(consultation=c, sender=c.patient, content='d')

    # a second consultation the patient is not part of
    other = Consultation.objects.create(patient=other_patient, doctor=doctor, title='Lain', description='lain-lain')
    Message.objects.create(consultation=other, sender=doctor, content='bukan untukmu')

    assert api(c.patient).get('/api/messages/unread/count').data['data'] == {'unreadCount': 2}
    assert api(c.doctor).get('/api/messages/unread/count').data['data'] == {'unreadCount': 1}

    r = api(c.patient).put(f'/api/messages/consultation/{c.id}/read')
    assert r.status_code == 200
    assert r.data['data'] == {'updated': 2}
    assert MessagingGate.unread_count(c.patient) == 0
    assert MessagingGate.unread_count(c.doctor) == 1


def test_mark_read_outside_scope(api, paid_active_consultation, other_patient):
    r = api(other_patient).put(f'/api/messages/consultation/{paid_active_consultation.id}/read')
    assert r.status_code == 404


def test_only_sender_can_delete(api, paid_active_consultation, relay):
    c = paid_active_consultation
    msg = Message.objects.create(consultation=c, sender=c.patient, content='salah kirim')

    assert api(c.doctor).delete(f'/api/messages/{msg.id}').status_code == 404
    assert Message.objects.filter(pk=msg.pk).exists()

    r = api(c.patient).delete(f'/api/messages/{msg.id}')
    assert r.status_code == 200
    assert not Message.objects.filter(pk=msg.pk).exists()
    assert relay.events[-1][1] == 'message.deleted'
    assert relay.events[-1][2] == {'messageId': msg.id, 'consultationId': c.id}


def test_refund_blocks_further_messages(paid_active_consultation, relay):
    c = paid_active_consultation
    gate = MessagingGate(relay)
    gate.send(c.patient, c.id, 'sebelum refund')
    Payment.objects.filter(consultation=c).update(status=P.REFUNDED)

    with pytest.raises(PaymentRequired):
        gate.send(c.patient, c.id, 'sesudah refund')
    c.refresh_from_db()
    assert c.status == C.ACTIVE


def test_equal_timestamps_page_by_id(paid_active_consultation, relay):
    c = paid_active_consultation
    for i in range(4):
        Message.objects.create(consultation=c, sender=c.patient, content=f'm{i}')
    Message.objects.filter(consultation=c).update(created_at=c.created_at)
    gate = MessagingGate(relay)

    first, total = gate.list_messages(c.patient, c.id, page=1, limit=2)
    second, _ = gate.list_messages(c.patient, c.id, page=2, limit=2)
    assert total == 4
    assert [m.content for m in first] == ['m2', 'm3']
    assert [m.content for m in second] == ['m0', 'm1']


@pytest.mark.parametrize('message_type', ['IMAGE', 'FILE', 'VOICE'])
def test_gate_requires_file_url_for_attachments(paid_active_consultation, relay, message_type):
    c = paid_active_consultation
    gate = MessagingGate(relay)
    with pytest.raises(ValidationFailed):
        gate.send(c.patient, c.id, 'lampiran', message_type=message_type)
    assert not Message.objects.exists()
    assert relay.events == []

    msg = gate.send(c.patient, c.id, 'lampiran', message_type=message_type,
                    file_url='/media/uploads/others/x.bin', file_name='x.bin')
    assert msg.file_url == '/media/uploads/others/x.bin'
