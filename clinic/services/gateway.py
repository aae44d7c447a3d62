"""
Midtrans payment gateway client.

Snap creates hosted payment sessions; the Core API status endpoint reports
the current state of a transaction.  Notifications are authenticated by
their ``signature_key`` and then re-read from the status endpoint, which
is what the official client libraries do, so a forged body can never set
a status the gateway does not report.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

SNAP_URLS = {
    False: 'https://app.sandbox.midtrans.com/snap/v1/transactions',
    True: 'https://app.midtrans.com/snap/v1/transactions',
}
CORE_URLS = {
    False: 'https://api.sandbox.midtrans.com/v2',
    True: 'https://api.midtrans.com/v2',
}


class GatewayError(RuntimeError):
    """The gateway could not be reached or answered with an error."""


class InvalidNotification(GatewayError):
    """A notification failed authenticity checks."""


@dataclass
class GatewaySession:
    token: str
    redirect_url: str
    raw: dict = field(default_factory=dict)


@dataclass
class GatewayStatus:
    order_id: str
    transaction_status: Optional[str]
    fraud_status: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict) -> 'GatewayStatus':
        return cls(
            order_id=data.get('order_id'),
            transaction_status=data.get('transaction_status'),
            fraud_status=data.get('fraud_status'),
            transaction_id=data.get('transaction_id'),
            payment_method=data.get('payment_type'),
            raw=data,
        )


class MidtransClient:
    def __init__(self, server_key: str, *, is_production: bool = False, timeout: int = 10,
                 session: Optional[requests.Session] = None):
        self.server_key = server_key
        self.is_production = is_production
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> 'MidtransClient':
        return cls(
            settings.MIDTRANS_SERVER_KEY,
            is_production=settings.MIDTRANS_IS_PRODUCTION,
            timeout=settings.GATEWAY_TIMEOUT,
        )

    def _request(self, method: str, url: str, payload: Optional[dict] = None) -> dict:
        if not self.server_key:
            raise GatewayError('Payment gateway is not configured')
        try:
            r = self.session.request(
                method, url,
                json=payload,
                auth=(self.server_key, ''),
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f'Gateway request failed: {exc.__class__.__name__}') from exc
        try:
            data = r.json()
        except ValueError as exc:
            raise GatewayError(f'Gateway returned non-JSON response (HTTP {r.status_code})') from exc
        if r.status_code >= 400:
            messages = data.get('error_messages') or [data.get('status_message') or 'unknown error']
            raise GatewayError(f"Gateway error {r.status_code}: {'; '.join(map(str, messages))}")
        return data

    def create_session(self, *, order_id: str, amount: Decimal, payer: dict, items: list,
                       callbacks: dict) -> GatewaySession:
        gross = int(amount)
        payload = {
            'transaction_details': {'order_id': order_id, 'gross_amount': gross},
            'customer_details': payer,
            'item_details': items,
            'callbacks': callbacks,
        }
        data = self._request('POST', SNAP_URLS[self.is_production], payload)
        token = data.get('token')
        redirect_url = data.get('redirect_url')
        if not token or not redirect_url:
            raise GatewayError('Invalid response from gateway: missing token/redirect_url')
        return GatewaySession(token=token, redirect_url=redirect_url, raw=data)

    def query_status(self, order_id: str) -> GatewayStatus:
        data = self._request('GET', f"{CORE_URLS[self.is_production]}/{order_id}/status")
        # Core API answers HTTP 200 with a 4xx status_code in the body for unknown orders
        code = str(data.get('status_code') or '')
        if code.startswith(('4', '5')) and not data.get('transaction_status'):
            raise GatewayError(f"Gateway status {code}: {data.get('status_message')}")
        return GatewayStatus.from_payload(data)

    def signature_for(self, order_id: str, status_code: str, gross_amount: str) -> str:
        raw = f"{order_id}{status_code}{gross_amount}{self.server_key}".encode()
        return hashlib.sha512(raw).hexdigest()

    def verify_notification(self, payload: dict) -> GatewayStatus:
        if not isinstance(payload, dict) or not payload.get('order_id'):
            raise InvalidNotification('Notification without order_id')
        order_id = str(payload['order_id'])
        signature = payload.get('signature_key')
        if signature:
            expected = self.signature_for(order_id, str(payload.get('status_code', '')),
                                          str(payload.get('gross_amount', '')))
            if not hmac.compare_digest(str(signature), expected):
                raise InvalidNotification('Invalid signature')
        return self.query_status(order_id)


def get_gateway() -> MidtransClient:
    return MidtransClient.from_settings()
