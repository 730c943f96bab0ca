"""Mutation operations over an in-memory :class:`Document`.

Every operation takes the document loaded for the current request, a
:class:`RequestContext` and its own parameters. It validates everything first,
then mutates the document in place and returns the response payload. A
rejected call raises one of the :mod:`confrerie.core.errors` classes before
touching the document, so the caller simply skips the save.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from werkzeug.security import check_password_hash, generate_password_hash

from .context import Broadcast, RequestContext, Target
from .errors import NotFoundError, PermissionDeniedError, ValidationError
from .models import (
    Achievement,
    ActivityLogEntry,
    AppTheme,
    Challenge,
    Difficulty,
    Document,
    Item,
    MediaEntry,
    NameStyle,
    NotificationType,
    Post,
    ProfileTheme,
    Role,
    User,
    new_id,
    now_ts,
)
from .normalize import (
    MAX_MEDIA,
    as_enum,
    cut,
    ensure_admin,
    first_image,
    normalize,
    normalize_party,
)
from .notifications import DEFAULT_BATCH, collect_and_mark, push_notification
from .scoring import compute_post_points
from .seeds import seed_avatar

LIKE_POINTS = 5
MIN_PASSWORD_LENGTH = 4

_URL = TypeAdapter(AnyUrl)


def is_url(value: str) -> bool:
    if not value:
        return False
    try:
        _URL.validate_python(value)
    except PydanticValidationError:
        return False
    return True


def credit(user: User, delta: int) -> int:
    """Add ``delta`` to the user's points, never going below zero."""
    user.points = max(0, user.points + delta)
    return user.points


def can_access_admin(user: User | None, ctx: RequestContext) -> bool:
    if user is None:
        return False
    return user.is_admin or ctx.admin_mode


def acting_user(doc: Document, ctx: RequestContext) -> User:
    user = doc.find_user(ctx.acting_user_id)
    if user is None:
        raise PermissionDeniedError("Connexion requise.")
    return user


def require_admin(doc: Document, ctx: RequestContext) -> User:
    user = acting_user(doc, ctx)
    if not can_access_admin(user, ctx):
        raise PermissionDeniedError("Action reservee admin.")
    return user


def _recipients(doc: Document, target: Target) -> list[User]:
    if isinstance(target, Broadcast):
        return doc.members()
    user = doc.find_user(target.user_id)
    if user is None:
        raise NotFoundError("Destinataire invalide.")
    return [user]


def _owner_summary(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "avatarUrl": user.avatar_url}


def _reverse_post_points(doc: Document, post: Post) -> int | None:
    """Take back everything ``post`` earned its author; return their points."""
    owner = doc.find_user(post.user_id)
    if owner is None:
        return None
    return credit(owner, -(post.points_awarded + len(post.likes) * LIKE_POINTS))


# ----------------------------------------------------------------------
# Account
# ----------------------------------------------------------------------
def authenticate(doc: Document, user_id: str, password: str) -> tuple[User, str]:
    """Check credentials and return the user with a welcome message."""
    user = doc.find_user(user_id.strip())
    if user is None:
        raise NotFoundError("Compte introuvable.")
    if user.password_hash or user.is_admin:
        if not user.password_hash or not check_password_hash(
            user.password_hash, password
        ):
            raise ValidationError("Mot de passe incorrect.")
    if user.role is Role.MEMBER and not user.password_hash:
        return user, "Premiere connexion: pense a definir ton mot de passe dans Parametres."
    return user, "Connexion reussie."


def set_password(doc: Document, ctx: RequestContext, new_password: str) -> dict:
    user = acting_user(doc, ctx)
    new_password = new_password.strip()
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Mot de passe trop court (min 4).")
    user.password_hash = generate_password_hash(new_password)
    user.must_set_password = False
    return {}


_PROFILE_FIELDS = (
    "name",
    "className",
    "bio",
    "avatarUrl",
    "theme",
    "profileTheme",
    "nameStyle",
    "profileTitle",
    "profileMotto",
    "favoriteDrink",
    "bannerUrl",
)


def profile_payload(user: User) -> dict[str, Any]:
    data = user.model_dump(mode="json", by_alias=True)
    return {key: data[key] for key in _PROFILE_FIELDS}


def update_profile(
    doc: Document, ctx: RequestContext, fields: Mapping[str, str | None]
) -> dict:
    """Apply a partial profile update; absent keys keep their current value."""
    user = acting_user(doc, ctx)

    def value(key: str, current: str) -> str:
        submitted = fields.get(key)
        return current if submitted is None else submitted.strip()

    password = (fields.get("new_password") or "").strip()
    if password and len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Nouveau mot de passe trop court (min 4).")

    name = value("name", user.name) or user.name
    class_name = value("class_name", user.class_name) or "Fetard"
    theme = value("theme", user.theme.value)
    profile_theme = value("profile_theme", user.profile_theme.value)
    name_style = value("name_style", user.name_style.value)
    banner_url = value("banner_url", user.banner_url)
    avatar_url = (fields.get("avatar_url") or "").strip()

    user.name = cut(name, 40)
    user.class_name = cut(class_name, 40)
    user.bio = cut(value("bio", user.bio), 180)
    user.theme = as_enum(AppTheme, theme, AppTheme.NEON)
    user.profile_theme = as_enum(ProfileTheme, profile_theme, ProfileTheme.MIDNIGHT)
    user.name_style = as_enum(NameStyle, name_style, NameStyle.DEFAULT)
    user.profile_title = cut(value("profile_title", user.profile_title), 40)
    user.profile_motto = cut(value("profile_motto", user.profile_motto), 110)
    user.favorite_drink = cut(value("favorite_drink", user.favorite_drink), 32)
    user.banner_url = cut(banner_url, 300) if is_url(banner_url) else ""
    if is_url(avatar_url):
        user.avatar_url = cut(avatar_url, 300)
    if password:
        user.password_hash = generate_password_hash(password)
        user.must_set_password = False

    return {"user": profile_payload(user)}


# ----------------------------------------------------------------------
# Posts
# ----------------------------------------------------------------------
def create_post(
    doc: Document,
    ctx: RequestContext,
    *,
    description: str,
    party_id: str,
    media: list[MediaEntry] | None = None,
    rng: random.Random | None = None,
    now: int | None = None,
) -> dict:
    author = acting_user(doc, ctx)
    description = description.strip()
    party_id = party_id.strip()
    if not description or not party_id:
        raise ValidationError("Description et soiree obligatoires.")
    party = doc.find_party(party_id)
    if party is None:
        raise NotFoundError("Soiree introuvable.")

    media = list(media or [])[:MAX_MEDIA]
    description = cut(description, 1000)
    score = compute_post_points(description, media, rng)
    now = now if now is not None else now_ts()

    post = Post(
        id=new_id("post"),
        user_id=author.id,
        party_id=party.id,
        image_url=first_image(media),
        media=media,
        description=description,
        points_awarded=score.points,
        gm_comment=score.comment,
        timestamp=now,
        likes=[],
    )
    doc.posts.insert(0, post)
    owner_points = credit(author, post.points_awarded)

    for member in doc.members():
        if member.id == author.id:
            continue
        push_notification(
            doc,
            member.id,
            NotificationType.POST,
            "Nouveau post",
            f"{author.name} a poste dans {party.name}",
            now,
        )

    return {
        "post": post.model_dump(mode="json", by_alias=True),
        "owner": _owner_summary(author),
        "party": party.model_dump(mode="json", by_alias=True),
        "ownerPoints": owner_points,
    }


def toggle_like(doc: Document, ctx: RequestContext, *, post_id: str) -> dict:
    user = acting_user(doc, ctx)
    post = doc.find_post(post_id.strip())
    if post is None:
        raise NotFoundError("Post introuvable.")
    if post.user_id == user.id:
        raise PermissionDeniedError("Tu ne peux pas liker ton propre post.")

    liked = user.id in post.likes
    if liked:
        post.likes = [uid for uid in post.likes if uid != user.id]
        delta = -LIKE_POINTS
    else:
        post.likes.append(user.id)
        delta = LIKE_POINTS

    owner = doc.find_user(post.user_id)
    owner_points = credit(owner, delta) if owner is not None else 0

    return {
        "likesCount": len(post.likes),
        "liked": not liked,
        "postId": post.id,
        "ownerId": post.user_id,
        "ownerPoints": owner_points,
    }


def delete_post(doc: Document, ctx: RequestContext, *, post_id: str) -> dict:
    user = acting_user(doc, ctx)
    post = doc.find_post(post_id.strip())
    if post is None:
        raise NotFoundError("Post introuvable.")
    if post.user_id != user.id and not can_access_admin(user, ctx):
        raise PermissionDeniedError("Suppression non autorisee.")

    owner_points = _reverse_post_points(doc, post)
    doc.posts.remove(post)
    return {
        "postId": post.id,
        "ownerId": post.user_id,
        "ownerPoints": owner_points or 0,
    }


# ----------------------------------------------------------------------
# Parties
# ----------------------------------------------------------------------
def create_party(
    doc: Document,
    ctx: RequestContext,
    *,
    name: str,
    location_name: str,
    date: str = "",
    lat: float | None = None,
    lng: float | None = None,
    cover_url: str = "",
) -> dict:
    user = acting_user(doc, ctx)
    name = name.strip()
    location_name = location_name.strip()
    if not name or not location_name:
        raise ValidationError("Nom et lieu obligatoires.")

    party = normalize_party(
        {
            "id": new_id("party"),
            "name": name,
            "date": date,
            "locationName": location_name,
            "coverUrl": cover_url,
            "lat": lat,
            "lng": lng,
            "createdBy": user.id,
        }
    )
    doc.parties.insert(0, party)
    return {"party": party.model_dump(mode="json", by_alias=True)}


def admin_update_party_cover(
    doc: Document, ctx: RequestContext, *, party_id: str, cover_url: str
) -> dict:
    require_admin(doc, ctx)
    party = doc.find_party(party_id.strip())
    if party is None:
        raise NotFoundError("Soiree introuvable.")
    cover_url = cover_url.strip()
    if not cover_url:
        raise ValidationError("Image de couverture requise.")
    party.cover_url = cut(cover_url, 300)
    return {"partyId": party.id, "coverUrl": party.cover_url}


def delete_party(doc: Document, ctx: RequestContext, *, party_id: str) -> dict:
    """Remove a party and every post made there, reversing their points."""
    require_admin(doc, ctx)
    party = doc.find_party(party_id.strip())
    if party is None:
        raise NotFoundError("Soiree introuvable.")

    remaining = []
    for post in doc.posts:
        if post.party_id == party.id:
            _reverse_post_points(doc, post)
        else:
            remaining.append(post)
    doc.posts = remaining
    doc.parties.remove(party)
    return {"partyId": party.id}


# ----------------------------------------------------------------------
# Administration
# ----------------------------------------------------------------------
def admin_add_points(
    doc: Document,
    ctx: RequestContext,
    *,
    target_user_id: str,
    delta: int,
    reason: str = "",
    now: int | None = None,
) -> dict:
    admin = require_admin(doc, ctx)
    target = doc.find_user(target_user_id.strip())
    if target is None:
        raise NotFoundError("Joueur invalide.")
    if target.is_admin:
        raise ValidationError("Joueur invalide.")

    points = credit(target, delta)
    doc.activity.append(
        ActivityLogEntry(
            id=new_id("act"),
            type="points",
            by=admin.id,
            target=target.id,
            delta=delta,
            reason=cut(reason, 120),
            timestamp=now if now is not None else now_ts(),
        )
    )
    return {"userId": target.id, "points": points}


def admin_create_user(
    doc: Document,
    ctx: RequestContext,
    *,
    name: str,
    class_name: str = "Fetard",
    role: str = Role.MEMBER.value,
    password: str = "",
    avatar_url: str = "",
) -> dict:
    require_admin(doc, ctx)
    name = name.strip()
    if not name:
        raise ValidationError("Nom obligatoire.")
    role_value = Role.ADMIN if role.strip().upper() == Role.ADMIN.value else Role.MEMBER
    password = password.strip()
    if role_value is Role.ADMIN and len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Mot de passe admin obligatoire (min 4).")

    avatar_url = avatar_url.strip()
    user = User(
        id=new_id("user"),
        name=cut(name, 40),
        role=role_value,
        class_name=cut(class_name, 40) or "Fetard",
        avatar_url=cut(avatar_url, 300) if is_url(avatar_url) else seed_avatar(name),
        password_hash=generate_password_hash(password) if password else None,
        must_set_password=role_value is Role.MEMBER and not password,
    )
    doc.users.append(user)
    return {"user": {"id": user.id, "name": user.name, "role": user.role.value}}


def admin_delete_user(
    doc: Document, ctx: RequestContext, *, target_user_id: str
) -> dict:
    """Delete a member and scrub their likes; their posts and items stay."""
    admin = require_admin(doc, ctx)
    target = doc.find_user(target_user_id.strip())
    if target is None:
        raise NotFoundError("Utilisateur introuvable.")
    if target.is_admin or target.id == admin.id:
        raise PermissionDeniedError("Suppression impossible pour ce compte.")

    doc.users.remove(target)
    for post in doc.posts:
        post.likes = [uid for uid in post.likes if uid != target.id]
    return {"userId": target.id}


def admin_toggle_map(doc: Document, ctx: RequestContext, *, enabled: bool) -> dict:
    require_admin(doc, ctx)
    doc.settings.is_map_enabled = enabled
    return {"isMapEnabled": enabled}


def admin_create_challenge(
    doc: Document, ctx: RequestContext, *, text: str, difficulty: str = "Moyen"
) -> dict:
    require_admin(doc, ctx)
    text = cut(text, 180)
    if not text:
        raise ValidationError("Texte du defi obligatoire.")
    challenge = Challenge(
        id=new_id("challenge"),
        text=text,
        difficulty=as_enum(Difficulty, difficulty, Difficulty.MOYEN),
    )
    doc.challenges.append(challenge)
    return {"challenge": challenge.model_dump(mode="json", by_alias=True)}


def admin_delete_challenge(
    doc: Document, ctx: RequestContext, *, challenge_id: str
) -> dict:
    require_admin(doc, ctx)
    challenge_id = challenge_id.strip()
    doc.challenges = [c for c in doc.challenges if c.id != challenge_id]
    return {"challengeId": challenge_id}


def grant_item(
    doc: Document,
    ctx: RequestContext,
    *,
    name: str,
    target: Target | None,
    description: str = "",
    rarity: str = "Commune",
    image_url: str = "",
) -> dict:
    """Give an item to one user or a fresh copy to every member."""
    require_admin(doc, ctx)
    name = cut(name, 40)
    if not name or target is None:
        raise ValidationError("Nom objet + destinataire requis.")
    recipients = _recipients(doc, target)

    template = Item(
        name=name,
        description=cut(description, 120) or "Objet mysterieux",
        rarity=cut(rarity, 30) or "Commune",
        image_url=cut(image_url, 300),
        stats="Special",
    )
    for user in recipients:
        user.inventory.append(template.model_copy(update={"id": new_id("item")}))
        push_notification(
            doc,
            user.id,
            NotificationType.ITEM,
            "Nouvel objet recu",
            f"Tu as recu: {template.name}",
        )
    return {"recipients": [u.id for u in recipients]}


def create_achievement(
    doc: Document,
    ctx: RequestContext,
    *,
    name: str,
    description: str = "",
    icon: str = "🏆",
) -> dict:
    require_admin(doc, ctx)
    name = cut(name, 50)
    if not name:
        raise ValidationError("Nom succes requis.")
    achievement = Achievement(
        id=new_id("ach"),
        name=name,
        description=cut(description, 120) or "Succes debloque",
        icon=cut(icon, 4) or "🏆",
        unlocked_at=now_ts(),
    )
    doc.achievement_library.append(achievement)
    return {"achievement": achievement.model_dump(mode="json", by_alias=True)}


def assign_achievement(
    doc: Document,
    ctx: RequestContext,
    *,
    achievement_id: str,
    target: Target | None,
) -> dict:
    """Copy a library achievement to one user, or to every member lacking it."""
    require_admin(doc, ctx)
    achievement_id = achievement_id.strip()
    if not achievement_id or target is None:
        raise ValidationError("Succes et destinataire requis.")
    template = next(
        (a for a in doc.achievement_library if a.id == achievement_id), None
    )
    if template is None:
        raise NotFoundError("Succes introuvable.")
    recipients = _recipients(doc, target)

    awarded = []
    for user in recipients:
        if isinstance(target, Broadcast) and any(
            a.name == template.name for a in user.achievements
        ):
            continue
        copy = template.model_copy()
        if isinstance(target, Broadcast):
            copy.id = new_id("ach")
        user.achievements.append(copy)
        awarded.append(user.id)
        push_notification(
            doc,
            user.id,
            NotificationType.ACHIEVEMENT,
            "Succes debloque",
            f"Tu as obtenu: {template.name}",
        )
    return {"recipients": awarded}


def export_backup(doc: Document, ctx: RequestContext) -> dict:
    require_admin(doc, ctx)
    return doc.to_json()


def import_backup(doc: Document, ctx: RequestContext, raw: Any) -> dict:
    """Replace the whole document with a normalized copy of ``raw``."""
    require_admin(doc, ctx)
    if not isinstance(raw, dict):
        raise ValidationError("JSON invalide.")
    imported = normalize(raw)
    ensure_admin(imported.users)
    for field in Document.model_fields:
        setattr(doc, field, getattr(imported, field))
    return {"users": len(doc.users), "posts": len(doc.posts)}


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------
def poll_notifications(
    doc: Document,
    ctx: RequestContext,
    *,
    limit: int = DEFAULT_BATCH,
    now: int | None = None,
) -> dict:
    user = acting_user(doc, ctx)
    batch = collect_and_mark(doc, user.id, limit=limit, now=now)
    return {
        "notifications": [n.model_dump(mode="json", by_alias=True) for n in batch]
    }

