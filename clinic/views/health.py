import logging

from django.db import DatabaseError, connections
from django.http import JsonResponse
from django.utils import timezone
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny

from clinic.responses import success_response

logger = logging.getLogger(__name__)


def _envelope(message, status):
    return JsonResponse({
        'success': False,
        'message': message,
        'errors': None,
        'code': 'not_found' if status == 404 else 'server_error',
        'timestamp': timezone.now().isoformat().replace('+00:00', 'Z'),
    }, status=status)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError:
        logger.exception('health check database round-trip failed')
        return _envelope('Database unavailable', 503)
    return success_response({'status': 'OK', 'db': bool(row and row[0] == 1)}, 'Server is running')


def endpoint_not_found(request, exception=None):
    return _envelope('Endpoint not found', 404)


def server_error(request):
    return _envelope('Internal Server Error', 500)
