from __future__ import annotations

from accounts.identity import Actor

from .errors import AuthRequired, PermissionDenied


def require_actor(actor: Actor | None) -> Actor:
    if actor is None or not getattr(actor, "user_id", None):
        raise AuthRequired("Login required")
    return actor


def require_staff(actor: Actor | None) -> Actor:
    actor = require_actor(actor)
    if not actor.is_staff:
        raise PermissionDenied("Staff only")
    return actor
