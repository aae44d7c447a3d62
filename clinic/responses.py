"""
Response envelope helpers.

Every API response body has the shape
``{success, message, data | errors, timestamp}``; paginated lists carry a
``pagination`` object with ``currentPage, totalPages, totalCount, limit``.
"""
from __future__ import annotations

import math
from typing import Any, Optional

from django.utils import timezone
from rest_framework.response import Response


def _now_iso() -> str:
    return timezone.now().isoformat().replace('+00:00', 'Z')


def success_response(data: Any = None, message: str = 'Success', status: int = 200) -> Response:
    return Response({
        'success': True,
        'message': message,
        'data': data,
        'timestamp': _now_iso(),
    }, status=status)


def error_response(message: str = 'Internal Server Error', status: int = 500,
                   errors: Optional[list] = None, code: Optional[str] = None) -> Response:
    body = {
        'success': False,
        'message': message,
        'errors': errors,
        'timestamp': _now_iso(),
    }
    if code:
        body['code'] = code
    return Response(body, status=status)


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        'currentPage': page,
        'totalPages': math.ceil(total / limit) if limit else 0,
        'totalCount': total,
        'limit': limit,
    }
