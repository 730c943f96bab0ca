"""End-to-end tests for the HTTP front door."""

import inspect
import json

import pytest
from fastapi.testclient import TestClient

from confrerie.config import Settings
from confrerie.core.seeds import SEED_CHALLENGES
from confrerie.data.store import DocumentStore
from confrerie.web import create_app
from confrerie.web.actions import ACTIONS
from confrerie.web.auth import REMEMBER_COOKIE, remember_value

SECRET = "test-secret"
AJAX = {"X-Requested-With": "XMLHttpRequest"}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_path=str(tmp_path / "app_data.json"), secret_key=SECRET)


@pytest.fixture
def client(settings) -> TestClient:
    return TestClient(create_app(settings))


def csrf(client: TestClient) -> str:
    return client.get("/").json()["csrf"]


def send(client: TestClient, action: str, ajax: bool = True, files=None, **fields):
    return client.post(
        "/",
        data={"action": action, "csrf": csrf(client), **fields},
        files=files,
        headers=AJAX if ajax else {},
        follow_redirects=False,
    )


def login(client: TestClient, user_id: str, password: str = "") -> None:
    response = send(client, "login", user_id=user_id, password=password)
    assert response.json()["ok"] is True


def test_anonymous_state(client) -> None:
    state = client.get("/?page=admin").json()
    assert state["user"] is None
    assert state["page"] == "dashboard"
    assert state["csrf"]
    assert state["settings"] == {"isMapEnabled": True}


def test_bad_csrf_is_rejected(client) -> None:
    client.get("/")
    response = client.post("/", data={"action": "login", "csrf": "nope", "user_id": "admin"})
    assert response.status_code == 419
    assert response.text == "Session expirée, recharge la page."


def test_login_redirects_with_flash_and_cookie(client) -> None:
    response = send(client, "login", ajax=False, user_id="admin", password="admin")
    assert response.status_code == 303
    assert response.headers["location"] == "/?page=dashboard"
    assert REMEMBER_COOKIE in response.cookies

    state = client.get("/?page=admin").json()
    assert state["flash"] == {"type": "success", "message": "Connexion reussie."}
    assert state["user"]["id"] == "admin"
    assert state["user"]["isAdmin"] is True
    assert state["user"]["rank"]["name"] == "Petit Joueur"
    assert state["page"] == "admin"
    # flash is shown once
    assert client.get("/").json()["flash"] is None


def test_wrong_password(client) -> None:
    response = send(client, "login", user_id="admin", password="bad")
    assert response.json() == {"ok": False, "message": "Mot de passe incorrect.", "data": {}}


def test_unknown_action_flashes_error(client) -> None:
    response = send(client, "launch_rockets", ajax=False)
    assert response.status_code == 303
    assert client.get("/").json()["flash"] == {"type": "error", "message": "Action inconnue."}


def test_login_required(client) -> None:
    response = send(client, "create_post", description="x", party_id="p1")
    assert response.json()["ok"] is False
    assert response.json()["message"] == "Connexion requise."


def test_remember_cookie_restores_session(settings) -> None:
    client = TestClient(create_app(settings))
    client.cookies.set(REMEMBER_COOKIE, remember_value("u2", SECRET))
    assert client.get("/").json()["user"]["id"] == "u2"


def test_forged_remember_cookie_is_ignored(settings) -> None:
    client = TestClient(create_app(settings))
    client.cookies.set(REMEMBER_COOKIE, "u2:deadbeef")
    assert client.get("/").json()["user"] is None


def test_logout(client) -> None:
    login(client, "u1")
    response = send(client, "logout", ajax=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"
    assert client.get("/").json()["user"] is None


def test_post_flow_with_guard_and_notifications(client, settings) -> None:
    login(client, "u1")
    party = send(client, "create_party", name="Fete", location_name="Bar").json()
    assert party["ok"] is True
    party_id = party["data"]["party"]["id"]

    media = json.dumps([{"type": "image", "url": "https://img/1.jpg"}])
    first = send(client, "create_post", description="Hello", party_id=party_id, media=media)
    body = first.json()
    assert body["ok"] is True
    assert body["data"]["post"]["imageUrl"] == "https://img/1.jpg"
    assert body["message"].startswith("Post cree.")

    again = send(client, "create_post", description="Hello", party_id=party_id, media=media)
    assert again.json()["ok"] is False
    assert again.json()["message"].startswith("Post deja envoye")
    assert len(DocumentStore(settings.data_path).load().posts) == 1

    login(client, "u2")
    # json_only action answers JSON even without the AJAX header
    polled = send(client, "poll_notifications", ajax=False).json()
    assert [n["type"] for n in polled["data"]["notifications"]] == ["post"]
    assert send(client, "poll_notifications").json()["data"]["notifications"] == []

    post_id = body["data"]["post"]["id"]
    liked = send(client, "toggle_like", post_id=post_id).json()
    assert liked["data"]["liked"] is True


def test_member_cannot_use_admin_actions(client) -> None:
    login(client, "u1")
    response = send(client, "admin_add_points", target_user_id="u2", delta_points="10")
    assert response.json()["message"] == "Action reservee admin."


def test_delegate_admin_mode(client, settings) -> None:
    login(client, "u5")
    toggled = send(client, "toggle_admin_mode", admin_mode="1").json()
    assert toggled["data"] == {"adminEnabled": True}
    assert client.get("/").json()["user"]["isAdmin"] is True

    response = send(client, "admin_add_points", target_user_id="u2", delta_points="10")
    assert response.json()["data"] == {"userId": "u2", "points": 10}
    assert DocumentStore(settings.data_path).load().activity[-1].by == "u5"


def test_backup_export_and_import(client) -> None:
    login(client, "admin", "admin")
    exported = send(client, "admin_export_backup")
    assert exported.headers["content-disposition"].startswith("attachment;")
    assert [u["id"] for u in exported.json()["users"]][-1] == "admin"

    backup = json.dumps({"users": [{"id": "x", "name": "X"}]}).encode("utf-8")
    response = send(
        client,
        "admin_import_backup",
        files={"backup_file": ("backup.json", backup, "application/json")},
    )
    assert response.json()["data"] == {"users": 2, "posts": 0}

    broken = send(
        client,
        "admin_import_backup",
        files={"backup_file": ("backup.json", b"{oops", "application/json")},
    )
    assert broken.json()["message"] == "JSON invalide."


def test_draw_challenge(client) -> None:
    texts = {text for _, text, _ in SEED_CHALLENGES}
    assert client.get("/challenge").json()["text"] in texts


@pytest.mark.parametrize("delta", ["1e400", "-inf", "nan"])
def test_non_finite_points_are_rejected(client, settings, delta) -> None:
    login(client, "admin", "admin")
    response = send(client, "admin_add_points", target_user_id="u1", delta_points=delta)
    assert response.status_code == 200
    assert response.json() == {"ok": False, "message": "Nombre invalide.", "data": {}}
    assert DocumentStore(settings.data_path).load().find_user("u1").points == 0


def test_garbage_points_read_as_zero(client) -> None:
    login(client, "admin", "admin")
    response = send(client, "admin_add_points", target_user_id="u1", delta_points="beaucoup")
    assert response.json()["data"] == {"userId": "u1", "points": 0}


def test_deeply_nested_json_is_rejected(client, settings) -> None:
    nested = "[" * 100_000 + "]" * 100_000

    login(client, "u1")
    party = send(client, "create_party", name="Fete", location_name="Bar").json()
    post = send(
        client,
        "create_post",
        description="Hello",
        party_id=party["data"]["party"]["id"],
        media=nested,
    ).json()
    assert post == {"ok": False, "message": "Upload impossible: medias non supportes.", "data": {}}

    login(client, "admin", "admin")
    response = send(
        client,
        "admin_import_backup",
        files={"backup_file": ("backup.json", nested.encode("utf-8"), "application/json")},
    )
    assert response.json()["message"] == "JSON invalide."
    assert len(DocumentStore(settings.data_path).load().users) == 6


def test_action_handlers_run_off_the_event_loop() -> None:
    for entry in ACTIONS.values():
        assert not inspect.iscoroutinefunction(entry.handler), entry.name
