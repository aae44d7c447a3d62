"""
Bearer-token authentication backed by simplejwt.

Kept in its own module (and out of the views) so that DRF can import the
authentication class during start-up without circular imports.  The
identity helpers ``issue_tokens``/``verify_token`` are the only places
that know credentials are JWTs.
"""
from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.tokens import RefreshToken


class BearerJWTAuthentication(JWTAuthentication):
    """``Authorization: Bearer <jwt>``; tokens of deactivated users are rejected.

    Exists to give settings a stable import path and a place for later
    customisation; simplejwt already checks ``is_active``.
    """

    www_authenticate_realm = 'api'


def issue_tokens(user) -> dict:
    """Return a fresh access/refresh pair carrying the user's role."""
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    access = refresh.access_token
    access['role'] = user.role
    return {'accessToken': str(access), 'refreshToken': str(refresh)}


def verify_token(raw: str):
    """Resolve a raw access token to an active user, or raise ``InvalidToken``.

    Used by the WebSocket middleware, which has no DRF request to hang
    the authentication class on.
    """
    auth = BearerJWTAuthentication()
    validated = auth.get_validated_token(raw)
    return auth.get_user(validated)
