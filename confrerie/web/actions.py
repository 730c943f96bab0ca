"""Form actions reachable through ``POST /``.

Each handler reads its form fields, runs one operation through the store and
returns an :class:`ActionResult`. Handlers never build HTTP responses for
errors: they raise :mod:`confrerie.core.errors` exceptions and the dispatcher
turns them into a JSON envelope or a flash message.

Handlers are plain functions: the store blocks on file I/O and ``flock``, so
the dispatcher runs them in the threadpool rather than on the event loop.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import Request
from starlette.datastructures import FormData, UploadFile
from starlette.responses import JSONResponse, Response

from ..config import Settings
from ..core import operations
from ..core.context import RequestContext, parse_target
from ..core.errors import PermissionDeniedError, ValidationError
from ..core.guard import fingerprint, submission_guard
from ..core.models import Document, MediaEntry, Role
from ..core.normalize import normalize_media
from ..data.store import DocumentStore

PAGES = ("dashboard", "parties", "feed", "rankings", "map")


def safe_page(candidate: str, is_admin: bool) -> str:
    allowed = PAGES + ("admin",) if is_admin else PAGES
    return candidate if candidate in allowed else "dashboard"


@dataclass
class ActionRequest:
    request: Request
    form: FormData
    ctx: RequestContext
    store: DocumentStore
    settings: Settings

    def field(self, name: str, default: str = "") -> str:
        value = self.form.get(name)
        if value is None or isinstance(value, UploadFile):
            return default
        return value.strip()

    def optional(self, name: str) -> str | None:
        value = self.form.get(name)
        return value if isinstance(value, str) else None

    def integer(self, name: str) -> int:
        """Whole part of a numeric field. Garbage reads as 0, infinities are rejected."""
        try:
            number = float(self.field(name, "0"))
        except ValueError:
            return 0
        if not math.isfinite(number):
            raise ValidationError("Nombre invalide.")
        return int(number)

    def number(self, name: str) -> float | None:
        try:
            number = float(self.field(name))
        except ValueError:
            return None
        return number if math.isfinite(number) else None

    def media(self) -> list[MediaEntry]:
        raw = self.field("media")
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise ValidationError("Upload impossible: medias non supportes.") from exc
        return normalize_media({"media": entries if isinstance(entries, list) else []})

    def redirect_page(self, default: str) -> str:
        return self.field("redirect_page", default) or default

    @property
    def session(self) -> dict:
        return self.request.session


@dataclass
class ActionResult:
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    page: str | None = None
    flash_type: str = "success"
    remember_uid: str | None = None
    forget: bool = False


Handler = Callable[[ActionRequest], ActionResult | Response]


@dataclass(frozen=True)
class ActionSpec:
    name: str
    handler: Handler
    page: str = "dashboard"
    login_required: bool = True
    json_only: bool = False


ACTIONS: dict[str, ActionSpec] = {}


def action(
    name: str,
    *,
    page: str = "dashboard",
    login_required: bool = True,
    json_only: bool = False,
) -> Callable[[Handler], Handler]:
    """Register ``handler`` as the implementation of form action ``name``."""

    def decorator(handler: Handler) -> Handler:
        ACTIONS[name] = ActionSpec(name, handler, page, login_required, json_only)
        return handler

    return decorator


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------
@action("login", login_required=False)
def login(req: ActionRequest) -> ActionResult:
    doc = req.store.load()
    user, message = operations.authenticate(
        doc, req.field("user_id"), req.optional("password") or ""
    )
    req.session["uid"] = user.id
    if user.id != req.settings.admin_delegate_id:
        req.session["admin_mode_enabled"] = False
    first_login = user.role is Role.MEMBER and not user.password_hash
    return ActionResult(
        message,
        page="dashboard",
        flash_type="info" if first_login else "success",
        remember_uid=user.id,
    )


@action("logout", login_required=False)
def logout(req: ActionRequest) -> ActionResult:
    req.session.pop("uid", None)
    req.session["admin_mode_enabled"] = False
    return ActionResult("Deconnexion ok.", page="", flash_type="info", forget=True)


@action("toggle_admin_mode")
def toggle_admin_mode(req: ActionRequest) -> ActionResult:
    if req.ctx.acting_user_id != req.settings.admin_delegate_id:
        raise PermissionDeniedError("Action reservee au compte delegue.")
    enabled = req.field("admin_mode", "0") == "1"
    req.session["admin_mode_enabled"] = enabled
    return ActionResult(
        "Mode admin active." if enabled else "Mode admin desactive.",
        {"adminEnabled": enabled},
    )


@action("poll_notifications", json_only=True)
def poll_notifications(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.poll_notifications, req.ctx, limit=req.settings.notification_batch
    )
    return ActionResult("Notifications synchronisees.", data)


# ----------------------------------------------------------------------
# Profile
# ----------------------------------------------------------------------
@action("set_password")
def set_password(req: ActionRequest) -> ActionResult:
    req.store.mutate(
        operations.set_password, req.ctx, req.optional("new_password") or ""
    )
    return ActionResult("Mot de passe enregistre.")


@action("update_profile")
def update_profile(req: ActionRequest) -> ActionResult:
    keys = (
        "name",
        "class_name",
        "bio",
        "theme",
        "profile_theme",
        "name_style",
        "profile_title",
        "profile_motto",
        "favorite_drink",
        "banner_url",
        "new_password",
        "avatar_url",
    )
    fields = {key: req.optional(key) for key in keys}
    data = req.store.mutate(operations.update_profile, req.ctx, fields)
    return ActionResult("Profil mis a jour.", data)


# ----------------------------------------------------------------------
# Posts & parties
# ----------------------------------------------------------------------
@action("create_post", page="feed")
def create_post(req: ActionRequest) -> ActionResult:
    description = req.field("description")
    party_id = req.field("party_id")
    media = req.media()
    key = fingerprint(
        "post",
        req.ctx.acting_user_id,
        party_id,
        description,
        *sorted(m.url for m in media),
    )

    def run(doc: Document) -> dict:
        payload = operations.create_post(
            doc, req.ctx, description=description, party_id=party_id, media=media
        )
        submission_guard(
            req.session,
            key,
            req.settings.submit_cooldown,
            "Post deja envoye. Attends 2 secondes.",
        )
        return payload

    data = req.store.mutate(run)
    return ActionResult(f"Post cree. +{data['post']['pointsAwarded']} pts.", data, page="feed")


@action("toggle_like", page="feed")
def toggle_like(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(operations.toggle_like, req.ctx, post_id=req.field("post_id"))
    return ActionResult("Like mis a jour.", data, page=req.redirect_page("feed"))


@action("delete_post", page="feed")
def delete_post(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(operations.delete_post, req.ctx, post_id=req.field("post_id"))
    return ActionResult("Post supprime.", data, page=req.redirect_page("feed"))


@action("create_party", page="parties")
def create_party(req: ActionRequest) -> ActionResult:
    name = req.field("name")
    location = req.field("location_name")
    date = req.field("date") or datetime.now().date().isoformat()
    key = fingerprint("party", req.ctx.acting_user_id, name, location, date)

    def run(doc: Document) -> dict:
        payload = operations.create_party(
            doc,
            req.ctx,
            name=name,
            location_name=location,
            date=date,
            lat=req.number("lat"),
            lng=req.number("lng"),
            cover_url=req.field("cover_url"),
        )
        submission_guard(
            req.session,
            key,
            req.settings.submit_cooldown,
            "Soiree deja envoyee. Attends 2 secondes.",
        )
        return payload

    data = req.store.mutate(run)
    return ActionResult("Soiree ajoutee.", data, page=req.redirect_page("parties"))


# ----------------------------------------------------------------------
# Administration
# ----------------------------------------------------------------------
@action("admin_export_backup")
def admin_export_backup(req: ActionRequest) -> Response:
    data = operations.export_backup(req.store.load(), req.ctx)
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M")
    return JSONResponse(
        data,
        headers={
            "Content-Disposition": f'attachment; filename="confrerie_backup_{stamp}.json"'
        },
    )


@action("admin_import_backup", page="admin")
def admin_import_backup(req: ActionRequest) -> ActionResult:
    upload = req.form.get("backup_file")
    if not isinstance(upload, UploadFile):
        raise ValidationError("Fichier backup manquant.")
    raw = upload.file.read()
    try:
        decoded = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise ValidationError("JSON invalide.") from exc
    data = req.store.mutate(operations.import_backup, req.ctx, decoded)
    return ActionResult("Backup restaure.", data, page="admin")


@action("admin_add_points", page="admin")
def admin_add_points(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.admin_add_points,
        req.ctx,
        target_user_id=req.field("target_user_id"),
        delta=req.integer("delta_points"),
        reason=req.field("reason"),
    )
    return ActionResult("Points mis a jour.", data, page="admin")


@action("admin_create_user", page="admin")
def admin_create_user(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.admin_create_user,
        req.ctx,
        name=req.field("name"),
        class_name=req.field("class_name", "Fetard"),
        role=req.field("role", "MEMBER"),
        password=req.field("password"),
        avatar_url=req.field("avatar_url"),
    )
    return ActionResult("Compte cree.", data, page="admin")


@action("admin_delete_user", page="admin")
def admin_delete_user(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.admin_delete_user,
        req.ctx,
        target_user_id=req.field("target_user_id"),
    )
    return ActionResult("Compte supprime.", data, page="admin")


@action("admin_toggle_map", page="admin")
def admin_toggle_map(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.admin_toggle_map,
        req.ctx,
        enabled=req.field("is_map_enabled", "1") == "1",
    )
    return ActionResult("Parametre carte mis a jour.", data, page="admin")


@action("admin_create_challenge", page="admin")
def admin_create_challenge(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.admin_create_challenge,
        req.ctx,
        text=req.field("challenge_text"),
        difficulty=req.field("challenge_difficulty", "Moyen"),
    )
    return ActionResult("Defi ajoute.", data, page="admin")


@action("admin_delete_challenge", page="admin")
def admin_delete_challenge(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.admin_delete_challenge,
        req.ctx,
        challenge_id=req.field("challenge_id"),
    )
    return ActionResult("Defi supprime.", data, page="admin")


@action("admin_update_party_cover", page="admin")
def admin_update_party_cover(req: ActionRequest) -> ActionResult:
    cover = req.field("party_cover_url")
    if cover and not operations.is_url(cover):
        cover = ""
    data = req.store.mutate(
        operations.admin_update_party_cover,
        req.ctx,
        party_id=req.field("party_id"),
        cover_url=cover,
    )
    return ActionResult("Photo de soiree mise a jour.", data, page="admin")


@action("admin_delete_party", page="admin")
def admin_delete_party(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.delete_party, req.ctx, party_id=req.field("party_id")
    )
    return ActionResult("Soiree supprimee.", data, page="admin")


@action("admin_create_item", page="admin")
def admin_create_item(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.grant_item,
        req.ctx,
        name=req.field("item_name"),
        description=req.field("item_desc"),
        rarity=req.field("item_rarity", "Commune"),
        image_url=req.field("item_image_url"),
        target=parse_target(req.field("item_target")),
    )
    return ActionResult("Objet distribue.", data, page="admin")


@action("admin_create_achievement", page="admin")
def admin_create_achievement(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.create_achievement,
        req.ctx,
        name=req.field("ach_name"),
        description=req.field("ach_desc"),
        icon=req.field("ach_icon", "🏆"),
    )
    return ActionResult("Succes ajoute a la bibliotheque.", data, page="admin")


@action("admin_assign_achievement", page="admin")
def admin_assign_achievement(req: ActionRequest) -> ActionResult:
    data = req.store.mutate(
        operations.assign_achievement,
        req.ctx,
        achievement_id=req.field("achievement_id"),
        target=parse_target(req.field("ach_target")),
    )
    return ActionResult("Succes distribue.", data, page="admin")
