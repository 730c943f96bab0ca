"""Session identity: remember cookie, CSRF token and request context."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from fastapi import Request
from starlette.responses import Response

from ..config import Settings
from ..core.context import RequestContext
from ..core.models import Document

REMEMBER_COOKIE = "confrerie_remember"
REMEMBER_TTL = 60 * 60 * 24 * 365 * 10


def remember_signature(uid: str, key: str) -> str:
    return hmac.new(key.encode("utf-8"), uid.encode("utf-8"), hashlib.sha256).hexdigest()


def remember_value(uid: str, key: str) -> str:
    return f"{uid}:{remember_signature(uid, key)}"


def verify_remember(raw: str, key: str) -> str | None:
    """Return the user id carried by a valid remember cookie."""
    if ":" not in raw:
        return None
    uid, sig = raw.split(":", 1)
    uid = uid.strip()
    if not uid or not sig:
        return None
    if not hmac.compare_digest(remember_signature(uid, key), sig):
        return None
    return uid


def set_remember_cookie(response: Response, request: Request, uid: str, key: str) -> None:
    response.set_cookie(
        REMEMBER_COOKIE,
        remember_value(uid, key),
        max_age=REMEMBER_TTL,
        path="/",
        secure=request.url.scheme == "https",
        httponly=True,
        samesite="lax",
    )


def clear_remember_cookie(response: Response) -> None:
    response.delete_cookie(REMEMBER_COOKIE, path="/", httponly=True, samesite="lax")


def ensure_csrf(request: Request) -> str:
    token = request.session.get("csrf")
    if not isinstance(token, str) or not token:
        token = secrets.token_hex(16)
        request.session["csrf"] = token
    return token


def csrf_ok(request: Request, submitted: str) -> bool:
    token = request.session.get("csrf")
    if not isinstance(token, str) or not token or not submitted:
        return False
    return hmac.compare_digest(token, submitted)


def restore_session(request: Request, doc: Document, settings: Settings) -> bool:
    """Bind the session to a known user, from the session or the remember cookie.

    Returns ``False`` when a stale identity was dropped and the remember
    cookie should be cleared.
    """
    uid = request.session.get("uid")
    if isinstance(uid, str) and uid:
        if doc.find_user(uid) is not None:
            return True
        request.session.pop("uid", None)
        return False

    raw = request.cookies.get(REMEMBER_COOKIE, "")
    if not raw:
        return True
    uid = verify_remember(raw, settings.signing_key)
    if uid is None or doc.find_user(uid) is None:
        return False
    request.session["uid"] = uid
    return True


def request_context(request: Request, settings: Settings) -> RequestContext:
    uid = request.session.get("uid")
    uid = uid if isinstance(uid, str) else ""
    admin_mode = (
        uid == settings.admin_delegate_id
        and request.session.get("admin_mode_enabled") is True
    )
    return RequestContext(
        acting_user_id=uid,
        csrf_token=ensure_csrf(request),
        admin_mode=admin_mode,
    )
