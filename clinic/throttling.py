from rest_framework.throttling import AnonRateThrottle, SimpleRateThrottle


class LoginRateThrottle(AnonRateThrottle):
    """Per-IP limit for credential endpoints (``login`` rate)."""
    scope = 'login'


class WebhookRateThrottle(SimpleRateThrottle):
    """Per-IP limit for gateway notifications, separate from anonymous traffic."""
    scope = 'webhook'

    def get_cache_key(self, request, view):
        return self.cache_format % {'scope': self.scope, 'ident': self.get_ident(request)}
