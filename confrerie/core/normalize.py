"""Coerce arbitrary decoded JSON into a valid :class:`Document`.

:func:`normalize` is total: whatever value it is given (a hand-edited file, a
backup of unknown provenance, ``None``) it returns a usable document and never
raises. Invalid list entries are dropped, missing fields take their defaults,
free text is trimmed and length-capped and the legacy shapes of older data
files are migrated:

* a plaintext ``password`` is hashed when no ``passwordHash`` exists;
* top-level ``messages`` become ``message`` notifications;
* posts with a bare ``imageUrl`` get a one element ``media`` list.

Running :func:`normalize` on its own output returns an equal document.
"""

from __future__ import annotations

import datetime
import math
import re
from enum import Enum
from typing import Any, TypeVar

from werkzeug.security import generate_password_hash

from .models import (
    Achievement,
    ActivityLogEntry,
    AppSettings,
    AppTheme,
    Challenge,
    Difficulty,
    Document,
    Item,
    MediaEntry,
    MediaType,
    NameStyle,
    Notification,
    NotificationType,
    Party,
    Post,
    ProfileTheme,
    Role,
    User,
    new_id,
    now_ts,
)
from .seeds import default_admin, default_users, seed_avatar, seed_challenges

MAX_MEDIA = 8

E = TypeVar("E", bound=Enum)

_AI_LABEL = re.compile(r"\s*\(sans\s*ia\)\s*", re.IGNORECASE)
_SPACES = re.compile(r"\s{2,}")


# ----------------------------------------------------------------------
# Scalar coercion
# ----------------------------------------------------------------------
def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (int, float)):
        return str(value)
    return default


def cut(value: str, limit: int) -> str:
    """Trim ``value`` and cap it at ``limit`` code points."""
    return value.strip()[:limit].strip()


def _text(value: Any, default: str, limit: int) -> str:
    return cut(_as_str(value, default), limit)


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        raw = value.strip()
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            number = float(raw)
        except ValueError:
            return default
        return int(number) if math.isfinite(number) else default
    return default


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() not in {"", "0", "false", "off", "no"}
    return bool(value)


def as_enum(enum: type[E], value: Any, default: E) -> E:
    try:
        return enum(_as_str(value).strip())
    except ValueError:
        return default


def _first(data: dict, *keys: str) -> Any:
    """Return the first non-null value among ``keys`` (new name first)."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _records(data: dict, key: str) -> list[dict]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _id(value: Any, prefix: str) -> str:
    return _as_str(value).strip() or new_id(prefix)


def strip_ai_label(value: str) -> str:
    return _SPACES.sub(" ", _AI_LABEL.sub(" ", value)).strip()


# ----------------------------------------------------------------------
# Entities
# ----------------------------------------------------------------------
def normalize_item(data: dict) -> Item:
    return Item(
        id=_id(data.get("id"), "item"),
        name=_text(data.get("name"), "", 40) or "Objet",
        description=_text(data.get("description"), "", 120) or "Objet mysterieux",
        rarity=_text(data.get("rarity"), "", 30) or "Commune",
        image_url=_text(data.get("imageUrl"), "", 300),
        stats=_text(data.get("stats"), "", 40) or "Special",
    )


def normalize_achievement(data: dict) -> Achievement:
    return Achievement(
        id=_id(data.get("id"), "ach"),
        name=_text(data.get("name"), "", 50) or "Succes",
        description=_text(data.get("description"), "", 120) or "Succes debloque",
        icon=_text(data.get("icon"), "", 16) or "🏆",
        unlocked_at=_as_int(data.get("unlockedAt"), now_ts()),
    )


def normalize_user(data: dict) -> User:
    role_name = _as_str(data.get("role"), Role.MEMBER.value).strip().upper()
    role = Role.ADMIN if role_name == Role.ADMIN.value else Role.MEMBER
    name = _text(data.get("name"), "", 40) or "Membre"

    password_hash = _first(data, "passwordHash", "password_hash")
    if not isinstance(password_hash, str) or not password_hash:
        password_hash = None
    legacy_password = _as_str(data.get("password"))
    if password_hash is None and legacy_password:
        password_hash = generate_password_hash(legacy_password)

    must_set_password = _as_bool(
        _first(data, "mustSetPassword", "must_set_password"), False
    )
    if role is Role.MEMBER and password_hash is None:
        must_set_password = True

    return User(
        id=_id(data.get("id"), "u"),
        name=name,
        role=role,
        points=max(0, _as_int(data.get("points"), 0)),
        class_name=_text(data.get("className"), "Fetard", 40),
        bio=_text(data.get("bio"), "", 180),
        avatar_url=_text(data.get("avatarUrl"), "", 300) or seed_avatar(name),
        inventory=[normalize_item(i) for i in _records(data, "inventory")],
        achievements=[
            normalize_achievement(a) for a in _records(data, "achievements")
        ],
        password_hash=password_hash,
        must_set_password=must_set_password,
        theme=as_enum(AppTheme, data.get("theme"), AppTheme.NEON),
        profile_theme=as_enum(
            ProfileTheme, data.get("profileTheme"), ProfileTheme.MIDNIGHT
        ),
        name_style=as_enum(NameStyle, data.get("nameStyle"), NameStyle.DEFAULT),
        profile_title=_text(data.get("profileTitle"), "", 40),
        profile_motto=_text(data.get("profileMotto"), "", 110),
        favorite_drink=_text(data.get("favoriteDrink"), "", 32),
        banner_url=_text(data.get("bannerUrl"), "", 300),
    )


def normalize_party(data: dict) -> Party:
    lat = _as_number(data.get("lat"))
    lng = _as_number(data.get("lng"))
    if lat is None or lng is None:
        lat = lng = None
    return Party(
        id=_id(data.get("id"), "party"),
        name=_text(data.get("name"), "", 80) or "Soiree",
        date=_text(data.get("date"), "", 32) or datetime.date.today().isoformat(),
        location_name=_text(data.get("locationName"), "", 120) or "Lieu inconnu",
        cover_url=_text(data.get("coverUrl"), "", 300) or "logo.png",
        lat=lat,
        lng=lng,
        created_by=_text(data.get("createdBy"), "", 64) or "admin",
    )


def normalize_media(data: dict) -> list[MediaEntry]:
    media: list[MediaEntry] = []
    for entry in _records(data, "media"):
        kind = _as_str(entry.get("type")).strip().lower()
        url = _text(entry.get("url"), "", 500)
        if not url or kind not in {MediaType.IMAGE.value, MediaType.VIDEO.value}:
            continue
        media.append(MediaEntry(type=MediaType(kind), url=url))

    if not media:
        legacy_image = _text(data.get("imageUrl"), "", 500)
        if legacy_image:
            media.append(MediaEntry(type=MediaType.IMAGE, url=legacy_image))

    return media[:MAX_MEDIA]


def first_image(media: list[MediaEntry]) -> str:
    return next((m.url for m in media if m.type is MediaType.IMAGE), "")


def normalize_post(data: dict) -> Post:
    media = normalize_media(data)

    likes: list[str] = []
    raw_likes = data.get("likes")
    if isinstance(raw_likes, list):
        for uid in raw_likes:
            if isinstance(uid, str) and uid and uid not in likes:
                likes.append(uid)

    gm_comment = cut(strip_ai_label(_as_str(data.get("gmComment"))), 120)

    return Post(
        id=_id(data.get("id"), "post"),
        user_id=_as_str(data.get("userId")).strip(),
        party_id=_as_str(data.get("partyId")).strip(),
        image_url=first_image(media) or _text(data.get("imageUrl"), "", 500),
        media=media,
        description=_text(data.get("description"), "", 1000),
        points_awarded=_as_int(data.get("pointsAwarded"), 0),
        gm_comment=gm_comment or "Post publie.",
        timestamp=_as_int(data.get("timestamp"), now_ts()),
        likes=likes,
    )


def normalize_challenge(data: dict) -> Challenge:
    return Challenge(
        id=_id(data.get("id"), "challenge"),
        text=_text(data.get("text"), "", 180) or "Defi mystere",
        difficulty=as_enum(Difficulty, data.get("difficulty"), Difficulty.MOYEN),
    )


def normalize_notification(data: dict) -> Notification:
    read_at = data.get("readAt")
    return Notification(
        id=_id(data.get("id"), "notif"),
        to_user_id=_as_str(data.get("toUserId")).strip(),
        type=as_enum(
            NotificationType,
            _as_str(data.get("type")).lower(),
            NotificationType.INFO,
        ),
        title=_text(data.get("title"), "", 80) or "Notification",
        body=_text(data.get("body"), "", 220),
        created_at=_as_int(data.get("createdAt"), now_ts()),
        read_at=None if read_at is None else _as_int(read_at, 0),
    )


def normalize_activity(data: dict) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=_id(data.get("id"), "act"),
        type=_text(data.get("type"), "", 20) or "event",
        by=_as_str(data.get("by")).strip(),
        target=_as_str(data.get("target")).strip(),
        delta=_as_int(data.get("delta"), 0),
        reason=_text(data.get("reason"), "", 120),
        timestamp=_as_int(data.get("timestamp"), now_ts()),
    )


def _legacy_messages(data: dict) -> list[Notification]:
    notifications = []
    for message in _records(data, "messages"):
        to_user_id = _as_str(message.get("toUserId")).strip()
        if not to_user_id:
            continue
        notifications.append(
            normalize_notification(
                {
                    "toUserId": to_user_id,
                    "type": NotificationType.MESSAGE.value,
                    "title": "Message",
                    "body": message.get("text"),
                    "createdAt": message.get("timestamp"),
                }
            )
        )
    return notifications


def ensure_admin(users: list[User]) -> None:
    """Append the default admin to ``users`` when it holds no ADMIN.

    A member squatting the default admin id would shadow it in every lookup,
    so the injected admin then gets a fresh id.
    """
    if any(u.is_admin for u in users):
        return
    admin = default_admin()
    if any(u.id == admin.id for u in users):
        admin.id = new_id("admin")
    users.append(admin)


def challenge_key(text: str) -> str:
    return text.strip().casefold()


def merge_seed_challenges(challenges: list[Challenge]) -> list[Challenge]:
    """Append every seed challenge whose text is not already present."""
    merged = list(challenges)
    known = {challenge_key(c.text) for c in merged if c.text.strip()}
    for seed in seed_challenges():
        key = challenge_key(seed.text)
        if key in known:
            continue
        merged.append(seed)
        known.add(key)
    return merged


# ----------------------------------------------------------------------
# Document
# ----------------------------------------------------------------------
def normalize(raw: Any) -> Document:
    """Return a fully valid :class:`Document` built from ``raw``."""
    if isinstance(raw, Document):
        raw = raw.to_json()
    if not isinstance(raw, dict):
        raw = {}

    users = [normalize_user(u) for u in _records(raw, "users")]
    if not users:
        users = default_users()
    ensure_admin(users)

    challenges = [normalize_challenge(c) for c in _records(raw, "challenges")]

    settings = AppSettings()
    raw_settings = raw.get("settings")
    if isinstance(raw_settings, dict):
        settings = AppSettings(
            is_map_enabled=_as_bool(raw_settings.get("isMapEnabled"), True)
        )

    notifications = [normalize_notification(n) for n in _records(raw, "notifications")]
    notifications.extend(_legacy_messages(raw))

    return Document(
        users=users,
        parties=[normalize_party(p) for p in _records(raw, "parties")],
        posts=[normalize_post(p) for p in _records(raw, "posts")],
        challenges=merge_seed_challenges(challenges),
        settings=settings,
        activity=[normalize_activity(a) for a in _records(raw, "activity")],
        notifications=notifications,
        achievement_library=[
            normalize_achievement(a) for a in _records(raw, "achievementLibrary")
        ],
    )
