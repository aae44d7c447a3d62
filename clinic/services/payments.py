"""
Payment reconciliation.

A consultation has at most one ``Payment``.  The gateway reports the
transaction status asynchronously, possibly more than once and out of
order, so every status write is a conditional update restricted to the
states ``ALLOWED_MOVES`` permits as a source: replaying a notification is
a no-op, and an older notification can never take a PAID or REFUNDED
payment backwards.
"""
import logging
import secrets
import string
import time
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import DateTimeField, F, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from clinic.exceptions import Conflict, Forbidden, NotFound, PreconditionFailed, UpstreamUnavailable
from clinic.models import Consultation, DoctorProfile, Payment
from clinic.services.audit import log_action
from clinic.services.gateway import GatewayError, GatewayStatus, get_gateway

User = get_user_model()
logger = logging.getLogger(__name__)

PaymentStatus = Payment.Status

ALLOWED_MOVES = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: {PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}

_ORDER_ALPHABET = string.ascii_uppercase + string.digits


def map_gateway_status(transaction_status: Optional[str], fraud_status: Optional[str] = None) -> Optional[str]:
    """Translate a gateway transaction status into a local payment status.

    ``None`` means the status is not recognised and must not change anything.
    """
    if transaction_status == 'capture':
        return PaymentStatus.PAID if fraud_status == 'accept' else PaymentStatus.PENDING
    if transaction_status == 'settlement':
        return PaymentStatus.PAID
    if transaction_status in ('cancel', 'deny', 'expire'):
        return PaymentStatus.FAILED
    if transaction_status == 'pending':
        return PaymentStatus.PENDING
    if transaction_status == 'refund':
        return PaymentStatus.REFUNDED
    return None


def generate_order_id() -> str:
    suffix = ''.join(secrets.choice(_ORDER_ALPHABET) for _ in range(9))
    return f"ORDER-{int(time.time() * 1000)}-{suffix}"


def _sources_for(target: str) -> list:
    return [src for src, targets in ALLOWED_MOVES.items() if target in targets]


def initiate_payment(user: User, consultation_id: int, gateway=None):
    """Create the payment for a consultation and open a hosted session.

    Returns ``(payment, session)``.
    """
    try:
        consultation = Consultation.objects.select_related('patient', 'doctor').get(pk=consultation_id)
    except Consultation.DoesNotExist:
        raise NotFound('Consultation not found')
    if consultation.patient_id != user.id:
        raise Forbidden('Only the patient of this consultation can pay for it')
    if Payment.objects.filter(consultation_id=consultation.id).exists():
        raise Conflict('Payment already exists for this consultation')
    if consultation.status == Consultation.Status.CANCELLED:
        raise PreconditionFailed('Consultation has been cancelled')
    profile = DoctorProfile.objects.filter(user_id=consultation.doctor_id).first()
    if profile is None:
        raise PreconditionFailed('Doctor has no consultation fee configured')

    gateway = gateway or get_gateway()
    amount = profile.consultation_fee
    order_id = generate_order_id()
    client_url = settings.CLIENT_URL.rstrip('/')
    try:
        session = gateway.create_session(
            order_id=order_id,
            amount=amount,
            payer={
                'first_name': consultation.patient.full_name,
                'email': consultation.patient.email,
                'phone': consultation.patient.phone or '',
            },
            items=[{
                'id': str(consultation.id),
                'price': int(amount),
                'quantity': 1,
                'name': f"Consultation with Dr. {consultation.doctor.full_name}"[:50],
                'category': 'Medical Consultation',
            }],
            callbacks={
                'finish': f"{client_url}/payment/finish",
                'error': f"{client_url}/payment/error",
                'pending': f"{client_url}/payment/pending",
            },
        )
    except GatewayError as exc:
        logger.warning('payment session for consultation %s failed: %s', consultation.id, exc)
        raise UpstreamUnavailable('Payment gateway unavailable, please try again later')

    try:
        with transaction.atomic():
            payment = Payment.objects.create(
                consultation=consultation,
                payer=user,
                amount=amount,
                gateway_order_id=order_id,
                raw_gateway_payload=session.raw,
            )
    except IntegrityError:
        raise Conflict('Payment already exists for this consultation')

    log_action(user=user, action='payment_create', object_type='payment', object_id=payment.id,
               detail={'orderId': order_id, 'consultationId': consultation.id, 'amount': str(amount)})
    return payment, session


def apply_gateway_status(payment: Payment, status: GatewayStatus) -> Payment:
    """Reconcile ``payment`` with a status reported by the gateway.

    Transaction id, payment method and the raw payload are refreshed on
    every call; the status only moves along ``ALLOWED_MOVES``.
    """
    target = map_gateway_status(status.transaction_status, status.fraud_status)
    now = timezone.now()
    audit = {
        'gateway_transaction_id': status.transaction_id or F('gateway_transaction_id'),
        'payment_method': status.payment_method or F('payment_method'),
        'raw_gateway_payload': status.raw,
        'updated_at': now,
    }
    moved = 0
    with transaction.atomic():
        Payment.objects.filter(pk=payment.pk).update(**audit)
        if target is not None:
            fields = {'status': target, 'updated_at': now}
            if target == PaymentStatus.PAID:
                fields['paid_at'] = Coalesce(F('paid_at'), Value(now, output_field=DateTimeField()))
            moved = Payment.objects.filter(pk=payment.pk, status__in=_sources_for(target)).update(**fields)

    previous = payment.status
    payment.refresh_from_db()
    if moved:
        logger.info('payment %s moved %s -> %s', payment.gateway_order_id, previous, payment.status)
        log_action(user=None, action='payment_reconcile', object_type='payment', object_id=payment.id,
                   detail={'from': previous, 'to': payment.status,
                           'transactionStatus': status.transaction_status})
    return payment


def handle_notification(payload: dict, gateway=None) -> Payment:
    """Verify a gateway push notification and reconcile the payment it names.

    Raises ``InvalidNotification`` for forged payloads, ``GatewayError`` if
    the status cannot be confirmed and ``NotFound`` for unknown orders.
    """
    gateway = gateway or get_gateway()
    status = gateway.verify_notification(payload)
    logger.info('gateway notification order=%s status=%s fraud=%s',
                status.order_id, status.transaction_status, status.fraud_status)
    payment = Payment.objects.filter(gateway_order_id=status.order_id).first()
    if payment is None:
        raise NotFound('Payment not found')
    return apply_gateway_status(payment, status)


def poll_status(user: User, payment_id: int, gateway=None) -> Payment:
    """Return the payment, refreshing a PENDING one from the gateway first."""
    try:
        payment = Payment.objects.select_related('consultation__doctor').get(pk=payment_id)
    except Payment.DoesNotExist:
        raise NotFound('Payment not found')
    if payment.payer_id != user.id:
        raise Forbidden('Only the payer can check this payment')
    if payment.status != PaymentStatus.PENDING:
        return payment

    gateway = gateway or get_gateway()
    try:
        status = gateway.query_status(payment.gateway_order_id)
    except GatewayError as exc:
        logger.warning('status query for %s failed, keeping %s: %s',
                       payment.gateway_order_id, payment.status, exc)
        return payment
    return apply_gateway_status(payment, status)


def payment_history(user: User, *, status: Optional[str] = None, page: int = 1, limit: int = 10):
    qs = Payment.objects.filter(payer=user)
    if status:
        qs = qs.filter(status=status)
    total = qs.count()
    start = (page - 1) * limit
    items = list(qs.select_related('consultation__doctor').order_by('-created_at', '-id')[start:start + limit])
    return items, total
