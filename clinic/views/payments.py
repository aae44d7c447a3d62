import logging

from django.conf import settings
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny

from clinic.exceptions import NotFound
from clinic.models import Role
from clinic.permissions import allow_roles
from clinic.responses import error_response, pagination, success_response
from clinic.serializers.payment import PaymentCreateSerializer, PaymentHistoryQuerySerializer, payment_data
from clinic.services.gateway import GatewayError, InvalidNotification
from clinic.services.payments import handle_notification, initiate_payment, payment_history, poll_status
from clinic.throttling import WebhookRateThrottle

logger = logging.getLogger(__name__)


@api_view(['POST'])
@allow_roles(Role.PATIENT)
def create_payment(request):
    s = PaymentCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    payment, session = initiate_payment(request.user, s.validated_data['consultation_id'])
    return success_response({
        'payment': payment_data(payment),
        'snapToken': session.token,
        'snapRedirectUrl': session.redirect_url,
        'clientKey': settings.MIDTRANS_CLIENT_KEY,
    }, 'Payment created successfully', status=201)


@api_view(['GET'])
@allow_roles()
def history(request):
    q = PaymentHistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    items, total = payment_history(request.user, status=vd.get('status'), page=vd['page'], limit=vd['limit'])
    return success_response({
        'payments': [payment_data(p, with_consultation=True) for p in items],
        'pagination': pagination(vd['page'], vd['limit'], total),
    }, 'Payment history retrieved successfully')


@api_view(['GET'])
@allow_roles()
def payment_status(request, pk: int):
    payment = poll_status(request.user, pk)
    return success_response(payment_data(payment, with_consultation=True), 'Payment status retrieved successfully')


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([WebhookRateThrottle])
def webhook(request):
    """Gateway push notification.

    Anything that is not a forged payload is acknowledged with 200 so the
    gateway stops redelivering; lookup and gateway failures are only logged.
    """
    payload = request.data if isinstance(request.data, dict) else {}
    try:
        payment = handle_notification(payload)
    except InvalidNotification as e:
        logger.warning('rejected gateway notification order=%s: %s', payload.get('order_id'), e)
        return error_response('Invalid notification', status=401, code='unauthorized')
    except NotFound:
        logger.warning('gateway notification for unknown order %s', payload.get('order_id'))
        return success_response({'status': 'ignored'}, 'Payment not found')
    except GatewayError as e:
        logger.error('gateway notification for %s could not be confirmed: %s', payload.get('order_id'), e)
        return success_response({'status': 'error'}, 'Notification received')
    return success_response({'status': 'success', 'paymentStatus': payment.status}, 'Notification processed')
