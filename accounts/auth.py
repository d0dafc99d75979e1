from __future__ import annotations

from django.contrib.auth import get_user_model
from django.conf import settings
from ninja.security import HttpBearer

from .jwt_utils import decode_token

User = get_user_model()


class JWTAuth(HttpBearer):
    """Access token from the HttpOnly cookie, falling back to a Bearer header."""

    def __call__(self, request):
        cookie_name = getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token")
        token = (request.COOKIES.get(cookie_name) or "").strip()
        if token:
            return self.authenticate(request, token)
        return super().__call__(request)

    def authenticate(self, request, token: str):
        try:
            payload = decode_token(token)
        except Exception:
            return None

        if payload.get("type") != "access":
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        try:
            return User.objects.get(id=int(user_id), is_active=True)
        except (User.DoesNotExist, ValueError):
            return None


def user_from_request(request):
    """Authenticated user for endpoints that also serve anonymous visitors."""
    u = getattr(request, "user", None)
    if u is not None and getattr(u, "is_authenticated", False):
        return u
    try:
        return JWTAuth()(request)
    except Exception:
        return None
