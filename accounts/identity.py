from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Actor:
    """Identity handed to the order core by the session/auth layer."""

    user_id: int
    email: str
    display_name: str = ""
    is_staff: bool = False

    @property
    def label(self) -> str:
        return self.display_name or self.email


def actor_from_user(user) -> Actor | None:
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    display = ""
    if hasattr(user, "get_full_name"):
        display = (user.get_full_name() or "").strip()
    return Actor(
        user_id=int(user.id),
        email=(user.email or "").strip(),
        display_name=display,
        is_staff=bool(getattr(user, "is_staff", False)),
    )
