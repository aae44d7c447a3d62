from decimal import Decimal

import pytest
import requests

from clinic.services.gateway import CORE_URLS, SNAP_URLS, GatewayError, InvalidNotification, MidtransClient


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def client(*responses):
    return MidtransClient('SB-server-key', session=FakeSession(*responses))


def test_create_session_posts_snap_transaction():
    gw = client(FakeResponse(201, {'token': 'tok', 'redirect_url': 'https://snap/tok'}))
    session = gw.create_session(order_id='ORDER-1-AAAAAAAAA', amount=Decimal('75000.00'),
                                payer={'first_name': 'Pasien'}, items=[], callbacks={'finish': 'x'})
    assert (session.token, session.redirect_url) == ('tok', 'https://snap/tok')

    method, url, kwargs = gw.session.calls[0]
    assert (method, url) == ('POST', SNAP_URLS[False])
    assert kwargs['auth'] == ('SB-server-key', '')
    assert kwargs['json']['transaction_details'] == {'order_id': 'ORDER-1-AAAAAAAAA', 'gross_amount': 75000}


def test_create_session_requires_token():
    gw = client(FakeResponse(201, {'redirect_url': 'https://snap/tok'}))
    with pytest.raises(GatewayError):
        gw.create_session(order_id='o', amount=Decimal('1'), payer={}, items=[], callbacks={})


@pytest.mark.parametrize('failure', [
    requests.Timeout('slow'),
    requests.ConnectionError('refused'),
    FakeResponse(500, {'status_message': 'boom'}),
    FakeResponse(401, {'error_messages': ['Access denied']}),
    FakeResponse(502, ValueError('not json')),
])
def test_transport_failures_become_gateway_errors(failure):
    with pytest.raises(GatewayError):
        client(failure).query_status('ORDER-1-AAAAAAAAA')


def test_unknown_order_in_body_is_an_error():
    gw = client(FakeResponse(200, {'status_code': '404', 'status_message': "Transaction doesn't exist."}))
    with pytest.raises(GatewayError):
        gw.query_status('ORDER-1-AAAAAAAAA')


def test_missing_server_key():
    gw = MidtransClient('', session=FakeSession())
    with pytest.raises(GatewayError):
        gw.query_status('ORDER-1-AAAAAAAAA')
    assert gw.session.calls == []


def test_query_status_reads_core_api():
    gw = client(FakeResponse(200, {'status_code': '200', 'order_id': 'ORDER-1-AAAAAAAAA',
                                   'transaction_status': 'settlement', 'transaction_id': 't-1',
                                   'payment_type': 'qris'}))
    status = gw.query_status('ORDER-1-AAAAAAAAA')
    assert gw.session.calls[0][:2] == ('GET', f"{CORE_URLS[False]}/ORDER-1-AAAAAAAAA/status")
    assert status.transaction_status == 'settlement'
    assert status.payment_method == 'qris'


def test_verify_rejects_bad_signature():
    gw = client()
    payload = {'order_id': 'ORDER-1-AAAAAAAAA', 'status_code': '200', 'gross_amount': '75000.00',
               'transaction_status': 'settlement', 'signature_key': 'deadbeef'}
    with pytest.raises(InvalidNotification):
        gw.verify_notification(payload)
    assert gw.session.calls == []


def test_verify_requires_order_id():
    with pytest.raises(InvalidNotification):
        client().verify_notification({'transaction_status': 'settlement'})


def test_verify_trusts_status_endpoint_over_body():
    gw = client(FakeResponse(200, {'status_code': '201', 'order_id': 'ORDER-1-AAAAAAAAA',
                                   'transaction_status': 'pending'}))
    payload = {'order_id': 'ORDER-1-AAAAAAAAA', 'status_code': '200', 'gross_amount': '75000.00',
               'transaction_status': 'settlement'}
    payload['signature_key'] = gw.signature_for('ORDER-1-AAAAAAAAA', '200', '75000.00')

    status = gw.verify_notification(payload)
    assert status.transaction_status == 'pending'
    assert len(gw.session.calls) == 1
