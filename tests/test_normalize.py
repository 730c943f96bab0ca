import json

import pytest
from werkzeug.security import check_password_hash

from confrerie.core.models import (
    AppTheme,
    Difficulty,
    MediaType,
    NotificationType,
    Role,
)
from confrerie.core.normalize import normalize
from confrerie.core.seeds import DEFAULT_ADMIN_ID, SEED_CHALLENGES


def messy_document() -> dict:
    return {
        "users": [
            {"id": "u1", "name": "  Alice  ", "role": "admin", "points": -30},
            {
                "id": "u2",
                "name": "Bob",
                "role": "superuser",
                "password": "hunter2",
                "theme": "pink",
                "profileTitle": "é" * 50,
                "favoriteDrink": "Spritz" + " " * 30 + "x",
            },
            "not a user",
            42,
            {"name": ""},
        ],
        "parties": [
            {"id": "p1", "name": "Fete", "lat": "48.85", "lng": 2.35},
            {"id": "p2", "lat": 10},
            None,
        ],
        "posts": [
            {
                "id": "post1",
                "userId": "u2",
                "partyId": "p1",
                "imageUrl": "https://img/1.jpg",
                "likes": ["u1", "u1", "", 5],
                "gmComment": "Bien joue (sans IA)",
            },
            {
                "id": "post2",
                "media": [{"type": "VIDEO", "url": "v.mp4"}] * 10
                + [{"type": "gif", "url": "x"}],
                "pointsAwarded": "12",
            },
        ],
        "challenges": "oops",
        "settings": {"isMapEnabled": "0"},
        "activity": [{"delta": "7"}],
        "notifications": [{"toUserId": "u1", "type": "weird", "readAt": None}],
        "messages": [
            {"toUserId": "u2", "text": "salut", "timestamp": 100},
            {"toUserId": "", "text": "lost"},
        ],
        "achievementLibrary": [{"name": "Roi"}, []],
    }


@pytest.mark.parametrize("raw", [None, [], "x", 42, {}, {"users": "nope"}])
def test_garbage_yields_default_roster(raw) -> None:
    doc = normalize(raw)
    assert [u.id for u in doc.users] == ["u1", "u2", "u3", "u4", "u5", DEFAULT_ADMIN_ID]
    assert doc.has_admin()
    assert doc.parties == []
    assert len(doc.challenges) == len(SEED_CHALLENGES)


def test_normalize_is_idempotent() -> None:
    once = normalize(messy_document())
    twice = normalize(once)
    assert twice == once
    assert normalize(once.to_json()) == once


def test_backup_round_trip() -> None:
    doc = normalize(messy_document())
    restored = normalize(json.loads(json.dumps(doc.to_json(), ensure_ascii=False)))
    assert restored == doc


def test_missing_admin_is_appended() -> None:
    doc = normalize({"users": [{"id": "m", "name": "Member"}]})
    assert [u.id for u in doc.users] == ["m", DEFAULT_ADMIN_ID]
    admin = doc.find_user(DEFAULT_ADMIN_ID)
    assert admin.role is Role.ADMIN
    assert check_password_hash(admin.password_hash, "admin")


def test_user_coercion() -> None:
    doc = normalize(messy_document())
    alice, bob = doc.users[0], doc.users[1]

    assert alice.role is Role.ADMIN
    assert alice.name == "Alice"
    assert alice.points == 0
    assert bob.role is Role.MEMBER
    assert bob.theme is AppTheme.NEON
    assert bob.profile_title == "é" * 40
    assert bob.favorite_drink == "Spritz"
    # the nameless entry survives with defaults
    assert doc.users[2].name == "Membre"
    assert doc.users[2].must_set_password is True
    assert doc.users[2].avatar_url.endswith("seed=Membre")
    # no default admin appended since Alice is one
    assert len(doc.users) == 3


def test_legacy_password_is_hashed() -> None:
    doc = normalize(messy_document())
    bob = doc.find_user("u2")
    assert bob.password_hash and check_password_hash(bob.password_hash, "hunter2")
    assert bob.must_set_password is False
    assert "password" not in doc.to_json()["users"][1]


def test_legacy_snake_case_keys_are_read() -> None:
    doc = normalize(
        {"users": [{"id": "a", "role": "ADMIN", "password_hash": "h", "must_set_password": True}]}
    )
    assert doc.users[0].password_hash == "h"
    assert doc.users[0].must_set_password is True


def test_party_coordinates_are_a_pair() -> None:
    doc = normalize(messy_document())
    p1, p2 = doc.parties
    assert (p1.lat, p1.lng) == (48.85, 2.35)
    assert (p2.lat, p2.lng) == (None, None)
    assert p2.name == "Soiree"
    assert p2.cover_url == "logo.png"


def test_post_media_and_likes() -> None:
    doc = normalize(messy_document())
    legacy, video = doc.posts

    assert [m.type for m in legacy.media] == [MediaType.IMAGE]
    assert legacy.image_url == "https://img/1.jpg"
    assert legacy.likes == ["u1"]
    assert legacy.gm_comment == "Bien joue"

    assert len(video.media) == 8
    assert all(m.type is MediaType.VIDEO for m in video.media)
    assert video.image_url == ""
    assert video.points_awarded == 12


def test_notifications_and_legacy_messages() -> None:
    doc = normalize(messy_document())
    assert [n.to_user_id for n in doc.notifications] == ["u1", "u2"]
    assert doc.notifications[0].type is NotificationType.INFO
    message = doc.notifications[1]
    assert message.type is NotificationType.MESSAGE
    assert message.body == "salut"
    assert message.created_at == 100
    assert message.read_at is None
    assert "messages" not in doc.to_json()


def test_settings_activity_and_library() -> None:
    doc = normalize(messy_document())
    assert doc.settings.is_map_enabled is False
    assert doc.activity[0].delta == 7
    assert [a.name for a in doc.achievement_library] == ["Roi"]


def test_challenge_seed_merge_keeps_custom_challenge() -> None:
    raw = {"challenges": [{"id": "mine", "text": "Fais un salto", "difficulty": "Hardcore"}]}
    once = normalize(raw)
    assert len(once.challenges) == 61
    assert once.challenges[0].id == "mine"
    assert once.challenges[0].text == "Fais un salto"
    assert once.challenges[0].difficulty is Difficulty.HARDCORE
    assert len(normalize(once).challenges) == 61


def test_challenge_seed_merge_is_case_insensitive() -> None:
    raw = {"challenges": [{"id": "x", "text": "  BOIS 3 GORGEES SANS LES MAINS.  "}]}
    doc = normalize(raw)
    assert len(doc.challenges) == 60
    assert doc.challenges[0].text == "BOIS 3 GORGEES SANS LES MAINS."
    assert doc.challenges[0].difficulty is Difficulty.MOYEN
    assert "c1" not in {c.id for c in doc.challenges}


def test_member_holding_admin_id_does_not_shadow_injected_admin() -> None:
    once = normalize({"users": [{"id": "admin", "name": "Imposteur", "role": "MEMBER"}]})
    assert [u.id for u in once.users][0] == "admin"
    injected = once.users[1]
    assert injected.is_admin
    assert injected.id != "admin"
    assert len({u.id for u in once.users}) == 2
    assert normalize(once) == once
