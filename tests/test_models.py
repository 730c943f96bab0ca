"""Tests for the typed schema."""

from confrerie.core.models import Document, Party, Post, Role, User


def test_user_defaults() -> None:
    """Unspecified fields on ``User`` use sensible defaults."""
    user = User(name="Alice")
    assert user.role is Role.MEMBER
    assert user.points == 0
    assert user.inventory == []
    assert user.password_hash is None
    assert isinstance(user.id, str) and user.id.startswith("user_")


def test_document_json_uses_camel_case_keys() -> None:
    doc = Document(
        users=[User(id="u1", name="Alice", class_name="Fetard")],
        parties=[Party(id="p1", location_name="Bar")],
        posts=[Post(id="x", user_id="u1", party_id="p1", points_awarded=7)],
    )
    data = doc.to_json()
    assert set(data) == {
        "users",
        "parties",
        "posts",
        "challenges",
        "settings",
        "activity",
        "notifications",
        "achievementLibrary",
    }
    assert data["users"][0]["className"] == "Fetard"
    assert data["users"][0]["passwordHash"] is None
    assert data["parties"][0]["locationName"] == "Bar"
    assert data["posts"][0]["pointsAwarded"] == 7
    assert data["settings"] == {"isMapEnabled": True}


def test_document_lookups() -> None:
    doc = Document(
        users=[User(id="a", role=Role.ADMIN), User(id="m")],
        posts=[Post(id="p")],
    )
    assert doc.find_user("m").id == "m"
    assert doc.find_user("zzz") is None
    assert doc.find_post("p") is not None
    assert [u.id for u in doc.members()] == ["m"]
    assert doc.has_admin()
