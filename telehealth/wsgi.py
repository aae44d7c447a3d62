"""
WSGI config for the telehealth project.

It exposes the WSGI callable as a module-level variable named ``application``.
HTTP-only deployments can use this; WebSocket chat needs ``telehealth.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'telehealth.settings')

application = get_wsgi_application()
