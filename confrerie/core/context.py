"""Request-scoped context and recipient targets passed into every operation."""

from __future__ import annotations

from dataclasses import dataclass

BROADCAST_SENTINEL = "ALL"


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, built fresh by the front door for each request.

    ``admin_mode`` is the session switch that lets the delegate member use
    admin operations without holding the ADMIN role.
    """

    acting_user_id: str
    csrf_token: str = ""
    admin_mode: bool = False


@dataclass(frozen=True)
class Single:
    user_id: str


@dataclass(frozen=True)
class Broadcast:
    """Every MEMBER account."""


Target = Single | Broadcast


def parse_target(raw: str) -> Target | None:
    """Turn a submitted recipient field into a :data:`Target`."""
    raw = raw.strip()
    if not raw:
        return None
    if raw == BROADCAST_SENTINEL:
        return Broadcast()
    return Single(raw)
