"""
Error kinds raised by the services and the unified API exception handler.

Services raise one of the ``APIException`` subclasses below; the handler
turns every exception (ours, DRF's and Django's) into the
``{success, message, errors, code, timestamp}`` envelope.
"""
from __future__ import annotations

import logging

from django.conf import settings
from rest_framework import exceptions, status
from rest_framework.views import exception_handler as drf_exception_handler

from clinic.responses import error_response

logger = logging.getLogger(__name__)


class ValidationFailed(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Validation failed'
    default_code = 'validation_failed'


class Unauthorized(exceptions.APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication failed'
    default_code = 'unauthorized'


class Forbidden(exceptions.APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Insufficient permissions'
    default_code = 'forbidden'


class NotFound(exceptions.APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found'
    default_code = 'not_found'


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists'
    default_code = 'conflict'


class PreconditionFailed(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Precondition failed'
    default_code = 'precondition_failed'


class PaymentRequired(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Payment required before sending messages'
    default_code = 'payment_required'


class InvalidTransition(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid status transition'
    default_code = 'invalid_transition'


class UpstreamUnavailable(exceptions.APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Upstream service unavailable'
    default_code = 'upstream_unavailable'


_DRF_CODES = {
    exceptions.NotAuthenticated: 'unauthorized',
    exceptions.AuthenticationFailed: 'unauthorized',
    exceptions.PermissionDenied: 'forbidden',
    exceptions.NotFound: 'not_found',
    exceptions.MethodNotAllowed: 'method_not_allowed',
    exceptions.UnsupportedMediaType: 'unsupported_media_type',
    exceptions.ParseError: 'validation_failed',
    exceptions.Throttled: 'throttled',
}


def _flatten_errors(data, prefix: str = '') -> list[dict]:
    """Turn DRF's nested ``{field: [msg, ...]}`` into ``[{field, message}]``."""
    out: list[dict] = []
    if isinstance(data, dict):
        for key, value in data.items():
            field = f"{prefix}.{key}" if prefix else str(key)
            out.extend(_flatten_errors(value, field))
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, (dict, list)):
                out.extend(_flatten_errors(item, prefix))
            else:
                out.append({'field': prefix or None, 'message': str(item)})
    else:
        out.append({'field': prefix or None, 'message': str(data)})
    return out


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('Unhandled error in %s', view.__class__.__name__ if view else 'view')
        message = str(exc) if settings.DEBUG else 'Internal Server Error'
        return error_response(message, status=500, code='server_error')

    if isinstance(exc, exceptions.ValidationError):
        return error_response(
            'Validation failed',
            status=resp.status_code,
            code='validation_failed',
            errors=_flatten_errors(resp.data),
        )

    code = getattr(exc, 'default_code', None)
    for cls, mapped in _DRF_CODES.items():
        if isinstance(exc, cls):
            code = mapped
            break

    detail = getattr(exc, 'detail', None)
    if isinstance(detail, (dict, list)):
        message = exc.default_detail
        errors = _flatten_errors(detail)
    else:
        message = str(detail) if detail is not None else str(exc)
        errors = None
    response = error_response(message, status=resp.status_code, code=code, errors=errors)
    # keep WWW-Authenticate / Retry-After computed by DRF
    for header in ('WWW-Authenticate', 'Retry-After'):
        if header in resp:
            response[header] = resp[header]
    return response
