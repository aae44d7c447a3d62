import json

import pytest
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from clinic.authentication import issue_tokens
from clinic.realtime.consumers import CLOSE_FORBIDDEN, CLOSE_NOT_FOUND, CLOSE_UNAUTHENTICATED
from clinic.realtime.middleware import JWTAuthMiddlewareStack
from clinic.realtime.routing import websocket_urlpatterns
from clinic.services.consultations import transition_consultation

pytestmark = pytest.mark.django_db(transaction=True)

application = JWTAuthMiddlewareStack(URLRouter(websocket_urlpatterns))


def token_for(user):
    return issue_tokens(user)['accessToken']


def communicator(consultation_id, token=None):
    path = f'/ws/consultations/{consultation_id}/'
    if token:
        path += f'?token={token}'
    return WebsocketCommunicator(application, path)


async def frame(comm):
    return json.loads(await comm.receive_from(timeout=2))


def test_rejects_missing_and_bad_tokens(consultation):
    async def run():
        for token in (None, 'x.y.z'):
            connected, code = await communicator(consultation.id, token).connect()
            assert (connected, code) == (False, CLOSE_UNAUTHENTICATED)

    async_to_sync(run)()


def test_rejects_outsiders_and_unknown_rooms(consultation, other_patient, patient):
    outsider, member = token_for(other_patient), token_for(patient)

    async def run():
        connected, code = await communicator(consultation.id, outsider).connect()
        assert (connected, code) == (False, CLOSE_FORBIDDEN)
        connected, code = await communicator(consultation.id + 1000, member).connect()
        assert (connected, code) == (False, CLOSE_NOT_FOUND)

    async_to_sync(run)()


def test_participants_receive_status_changes(consultation, patient, doctor):
    token = token_for(patient)

    async def run():
        comm = communicator(consultation.id, token)
        connected, _ = await comm.connect()
        assert connected

        await database_sync_to_async(transition_consultation)(doctor, consultation.id, 'ACTIVE')
        event = await frame(comm)
        assert event['type'] == 'consultation.status'
        assert event['data']['status'] == 'ACTIVE'
        assert event['data']['previousStatus'] == 'PENDING'
        await comm.disconnect()

    async_to_sync(run)()


def test_send_over_socket_is_gated_and_broadcast(paid_active_consultation, patient, doctor):
    c = paid_active_consultation
    patient_token, doctor_token = token_for(patient), token_for(doctor)

    async def run():
        patient_ws = communicator(c.id, patient_token)
        doctor_ws = communicator(c.id, doctor_token)
        assert (await patient_ws.connect())[0]
        assert (await doctor_ws.connect())[0]

        await patient_ws.send_to(text_data=json.dumps({'type': 'send', 'content': 'Dok, masih pusing'}))
        frames = [await frame(patient_ws), await frame(patient_ws)]
        ack = next(f for f in frames if f['type'] == 'ack')
        new = next(f for f in frames if f['type'] == 'message.new')
        assert new['data']['id'] == ack['messageId']

        delivered = await frame(doctor_ws)
        assert delivered['type'] == 'message.new'
        assert delivered['data']['content'] == 'Dok, masih pusing'

        await patient_ws.disconnect()
        await doctor_ws.disconnect()

    async_to_sync(run)()


def test_gate_errors_come_back_as_error_frames(consultation, patient):
    token = token_for(patient)

    async def run():
        ws = communicator(consultation.id, token)
        assert (await ws.connect())[0]

        await ws.send_to(text_data=json.dumps({'type': 'send', 'content': 'halo'}))
        error = await frame(ws)
        assert error['type'] == 'error'
        assert error['code'] == 'precondition_failed'

        await ws.send_to(text_data='bukan json')
        assert (await frame(ws))['code'] == 'invalid_json'
        await ws.send_to(text_data=json.dumps({'type': 'dance'}))
        assert (await frame(ws))['code'] == 'unsupported_type'
        await ws.disconnect()

    async_to_sync(run)()


def test_typing_goes_to_the_other_participant(consultation, patient, doctor):
    patient_token, doctor_token = token_for(patient), token_for(doctor)

    async def run():
        patient_ws = communicator(consultation.id, patient_token)
        doctor_ws = communicator(consultation.id, doctor_token)
        assert (await patient_ws.connect())[0]
        assert (await doctor_ws.connect())[0]

        await patient_ws.send_to(text_data=json.dumps({'type': 'typing', 'isTyping': True}))
        event = await frame(doctor_ws)
        assert event['type'] == 'user.typing'
        assert event['data']['userId'] == patient.id
        assert event['data']['isTyping'] is True
        assert await patient_ws.receive_nothing()

        await patient_ws.disconnect()
        await doctor_ws.disconnect()

    async_to_sync(run)()


def test_socket_attachment_needs_file_url(paid_active_consultation, patient):
    c = paid_active_consultation
    token = token_for(patient)

    async def run():
        ws = communicator(c.id, token)
        assert (await ws.connect())[0]

        await ws.send_to(text_data=json.dumps({'type': 'send', 'content': 'foto ruam', 'messageType': 'IMAGE'}))
        error = await frame(ws)
        assert (error['type'], error['code']) == ('error', 'validation_failed')

        await ws.send_to(text_data=json.dumps({'type': 'send', 'content': 'foto ruam', 'messageType': 'IMAGE',
                                               'fileUrl': '/media/uploads/images/ruam.png',
                                               'fileName': 'ruam.png'}))
        frames = [await frame(ws), await frame(ws)]
        new = next(f for f in frames if f['type'] == 'message.new')
        assert new['data']['fileUrl'] == '/media/uploads/images/ruam.png'
        assert new['data']['messageType'] == 'IMAGE'
        await ws.disconnect()

    async_to_sync(run)()
