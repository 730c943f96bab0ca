"""Typed schema for the single JSON document behind La Confrerie.

Every entity is a :mod:`pydantic` model with snake_case attributes and the
camelCase keys used on disk (``className``, ``passwordHash`` ...). Records are
only ever built from values already coerced by
:func:`confrerie.core.normalize.normalize`, so the rest of the application can
rely on every field being present and well typed.
"""

from __future__ import annotations

import datetime
import secrets
from datetime import UTC
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ts() -> int:
    """Current time as integer epoch seconds."""
    return int(datetime.datetime.now(tz=UTC).timestamp())


def new_id(prefix: str) -> str:
    """Return an id such as ``post_1700000000_a1b2c3d4``."""
    return f"{prefix}_{now_ts()}_{secrets.token_hex(4)}"


class Role(str, Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class Difficulty(str, Enum):
    FACILE = "Facile"
    MOYEN = "Moyen"
    HARDCORE = "Hardcore"


class AppTheme(str, Enum):
    NEON = "neon"
    GOLD = "gold"
    OCEAN = "ocean"
    CRIMSON = "crimson"
    FROST = "frost"


class ProfileTheme(str, Enum):
    MIDNIGHT = "midnight"
    SUNSET = "sunset"
    EMERALD = "emerald"
    AURORA = "aurora"
    OBSIDIAN = "obsidian"


class NameStyle(str, Enum):
    DEFAULT = "default"
    SUNFIRE = "sunfire"
    AQUA = "aqua"
    ROYAL = "royal"
    RAINBOW = "rainbow"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class NotificationType(str, Enum):
    INFO = "info"
    MESSAGE = "message"
    POST = "post"
    ITEM = "item"
    ACHIEVEMENT = "achievement"


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Item(_Record):
    """An inventory entry. Users may hold several copies of the same item."""

    id: str = Field(default_factory=lambda: new_id("item"))
    name: str = "Objet"
    description: str = "Objet mysterieux"
    rarity: str = "Commune"
    image_url: str = ""
    stats: str = "Special"


class Achievement(_Record):
    """An achievement, either a library template or a copy held by a user."""

    id: str = Field(default_factory=lambda: new_id("ach"))
    name: str = "Succes"
    description: str = "Succes debloque"
    icon: str = "🏆"
    unlocked_at: int = Field(default_factory=now_ts)


class User(_Record):
    """A member or administrator account.

    Attributes
    ----------
    points:
        Score of the user; never negative.
    password_hash:
        Werkzeug password hash, or ``None`` when no password was set yet.
    must_set_password:
        ``True`` for members that still have to choose a password.
    """

    id: str = Field(default_factory=lambda: new_id("user"))
    name: str = "Membre"
    role: Role = Role.MEMBER
    points: int = Field(0, ge=0)
    class_name: str = "Fetard"
    bio: str = ""
    avatar_url: str = ""
    inventory: list[Item] = Field(default_factory=list)
    achievements: list[Achievement] = Field(default_factory=list)
    password_hash: str | None = None
    must_set_password: bool = True
    theme: AppTheme = AppTheme.NEON
    profile_theme: ProfileTheme = ProfileTheme.MIDNIGHT
    name_style: NameStyle = NameStyle.DEFAULT
    profile_title: str = ""
    profile_motto: str = ""
    favorite_drink: str = ""
    banner_url: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class Party(_Record):
    id: str = Field(default_factory=lambda: new_id("party"))
    name: str = "Soiree"
    date: str = ""
    location_name: str = "Lieu inconnu"
    cover_url: str = "logo.png"
    lat: float | None = None
    lng: float | None = None
    created_by: str = "admin"


class MediaEntry(_Record):
    type: MediaType
    url: str


class Post(_Record):
    """A photo/video post made at a party.

    ``likes`` behaves as a set (no duplicates) but is kept as a list so the
    JSON order is stable. ``image_url`` mirrors the first image of ``media``.
    """

    id: str = Field(default_factory=lambda: new_id("post"))
    user_id: str = ""
    party_id: str = ""
    image_url: str = ""
    media: list[MediaEntry] = Field(default_factory=list, max_length=8)
    description: str = ""
    points_awarded: int = 0
    gm_comment: str = "Post publie."
    timestamp: int = Field(default_factory=now_ts)
    likes: list[str] = Field(default_factory=list)


class Challenge(_Record):
    id: str = Field(default_factory=lambda: new_id("challenge"))
    text: str = "Defi mystere"
    difficulty: Difficulty = Difficulty.MOYEN


class Notification(_Record):
    """A polled notification. ``read_at`` is ``None`` while unread."""

    id: str = Field(default_factory=lambda: new_id("notif"))
    to_user_id: str = ""
    type: NotificationType = NotificationType.INFO
    title: str = "Notification"
    body: str = ""
    created_at: int = Field(default_factory=now_ts)
    read_at: int | None = None


class AppSettings(_Record):
    is_map_enabled: bool = True


class ActivityLogEntry(_Record):
    """Append-only audit line for admin point adjustments."""

    id: str = Field(default_factory=lambda: new_id("act"))
    type: str = "event"
    by: str = ""
    target: str = ""
    delta: int = 0
    reason: str = ""
    timestamp: int = Field(default_factory=now_ts)


class Document(_Record):
    """The aggregate root holding every entity of the application."""

    users: list[User] = Field(default_factory=list)
    parties: list[Party] = Field(default_factory=list)
    posts: list[Post] = Field(default_factory=list)
    challenges: list[Challenge] = Field(default_factory=list)
    settings: AppSettings = Field(default_factory=AppSettings)
    activity: list[ActivityLogEntry] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
    achievement_library: list[Achievement] = Field(default_factory=list)

    def to_json(self) -> dict:
        """Return the JSON-serialisable shape used on disk and in backups."""
        return self.model_dump(mode="json", by_alias=True)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_user(self, user_id: str) -> User | None:
        return next((u for u in self.users if u.id == user_id), None)

    def find_party(self, party_id: str) -> Party | None:
        return next((p for p in self.parties if p.id == party_id), None)

    def find_post(self, post_id: str) -> Post | None:
        return next((p for p in self.posts if p.id == post_id), None)

    def members(self) -> list[User]:
        return [u for u in self.users if u.role is Role.MEMBER]

    def has_admin(self) -> bool:
        return any(u.is_admin for u in self.users)
