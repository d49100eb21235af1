"""
Token authentication for the hostel API.

Kept separate from any view definitions so that DRF can import the
authentication class during start-up without pulling in views.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token authentication (``Authorization: Token <key>``).

    Deactivated accounts are refused even when their token still exists.
    """

    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if not getattr(user, 'role', None):
            raise exceptions.AuthenticationFailed('User has no role assigned.')
        return user, token
