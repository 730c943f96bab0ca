"""FastAPI application: one action endpoint plus a small state endpoint."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from ..config import Settings, load_settings
from ..core import operations
from ..core.errors import ConfrerieError, PermissionDeniedError, PersistenceError
from ..core.guard import draw_challenge
from ..core.ranks import get_next_rank, get_rank, rank_progress
from ..data.store import DocumentStore
from .actions import ACTIONS, ActionRequest, ActionResult, ActionSpec, safe_page
from .auth import (
    REMEMBER_TTL,
    clear_remember_cookie,
    csrf_ok,
    ensure_csrf,
    request_context,
    restore_session,
    set_remember_cookie,
)

log = logging.getLogger("confrerie.web")


def is_ajax(request: Request) -> bool:
    return request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"


def _respond(
    request: Request,
    ok: bool,
    message: str,
    data: dict[str, Any] | None,
    page: str,
    flash_type: str,
    as_json: bool,
) -> Response:
    if as_json:
        return JSONResponse({"ok": ok, "message": message, "data": data or {}})
    request.session["flash"] = {"type": flash_type, "message": message}
    return RedirectResponse(f"/?page={page}" if page else "/", status_code=303)


def create_app(
    settings: Settings | None = None, store: DocumentStore | None = None
) -> FastAPI:
    """Build the application around ``store`` (defaults come from the environment)."""
    settings = settings or load_settings()
    store = store or DocumentStore(settings.data_path)
    store.ensure_storage()

    app = FastAPI(title="La Confrerie", version="1.0.0")
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.signing_key,
        session_cookie="confrerie_session",
        max_age=REMEMBER_TTL,
        same_site="lax",
    )
    app.state.settings = settings
    app.state.store = store

    @app.get("/")
    def state(request: Request, page: str = "dashboard") -> Response:
        doc = store.load()
        fresh = restore_session(request, doc, settings)
        ctx = request_context(request, settings)
        user = doc.find_user(ctx.acting_user_id)
        is_admin = operations.can_access_admin(user, ctx)

        me = None
        if user is not None:
            rank = get_rank(user.points)
            nxt = get_next_rank(user.points)
            me = {
                "id": user.id,
                "role": user.role.value,
                "points": user.points,
                "mustSetPassword": user.must_set_password,
                "isAdmin": is_admin,
                "rank": rank._asdict(),
                "nextRank": nxt._asdict() if nxt else None,
                "progress": rank_progress(user.points),
                **operations.profile_payload(user),
            }

        response = JSONResponse(
            {
                "csrf": ctx.csrf_token,
                "page": safe_page(page, is_admin),
                "flash": request.session.pop("flash", None),
                "user": me,
                "settings": doc.settings.model_dump(mode="json", by_alias=True),
            }
        )
        if not fresh:
            clear_remember_cookie(response)
        return response

    @app.get("/challenge")
    def challenge(request: Request) -> dict:
        doc = store.load()
        return {"text": draw_challenge(request.session, doc.challenges)}

    @app.post("/")
    async def dispatch(request: Request) -> Response:
        form = await request.form()
        ensure_csrf(request)
        submitted = form.get("csrf")
        if not isinstance(submitted, str) or not csrf_ok(request, submitted):
            return PlainTextResponse("Session expirée, recharge la page.", status_code=419)

        name = form.get("action")
        entry: ActionSpec | None = ACTIONS.get(name) if isinstance(name, str) else None
        ajax = is_ajax(request)
        if entry is None:
            return _respond(request, False, "Action inconnue.", None, "dashboard", "error", ajax)
        as_json = ajax or entry.json_only

        fresh = True
        if entry.login_required:
            fresh = restore_session(request, store.load(), settings)
        ctx = request_context(request, settings)
        req = ActionRequest(request, form, ctx, store, settings)

        try:
            if entry.login_required and not ctx.acting_user_id:
                raise PermissionDeniedError("Connexion requise.")
            result = await run_in_threadpool(entry.handler, req)
        except PersistenceError:
            log.exception("Action %s could not be saved", entry.name)
            return JSONResponse(
                {"ok": False, "message": "Erreur serveur.", "data": {}}, status_code=500
            )
        except ConfrerieError as exc:
            log.info("Action %s rejected: %s", entry.name, exc.message)
            response = _respond(request, False, exc.message, None, entry.page, "error", as_json)
            if not fresh:
                clear_remember_cookie(response)
            return response

        if isinstance(result, Response):
            return result
        return _finish(request, result, entry, as_json, fresh)

    def _finish(
        request: Request,
        result: ActionResult,
        entry: ActionSpec,
        as_json: bool,
        fresh: bool,
    ) -> Response:
        page = entry.page if result.page is None else result.page
        response = _respond(
            request, True, result.message, result.data, page, result.flash_type, as_json
        )
        if result.remember_uid:
            set_remember_cookie(response, request, result.remember_uid, settings.signing_key)
        if result.forget or not fresh:
            clear_remember_cookie(response)
        return response

    return app
