from rest_framework.throttling import SimpleRateThrottle


class LoginEmailRateThrottle(SimpleRateThrottle):
    """Limits login attempts per account email, whichever address they come from."""
    scope = 'login_email'

    def get_cache_key(self, request, view):
        email = request.data.get('email')

        if not email:
            return None

        ident = str(email).lower().strip()

        return self.cache_format % {
            'scope': self.scope,
            'ident': ident
        }


class LoginIPRateThrottle(SimpleRateThrottle):
    """Limits login attempts per client IP."""
    scope = 'login_ip'

    def get_cache_key(self, request, view):
        return self.cache_format % {
            'scope': self.scope,
            'ident': self.get_ident(request)
        }
