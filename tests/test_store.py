import json

import pytest

from confrerie.core.errors import PersistenceError, ValidationError
from confrerie.core.models import Party
from confrerie.data.store import DocumentStore


def test_first_run_seeds_file(store, data_path) -> None:
    doc = store.load()
    assert data_path.exists()
    raw = json.loads(data_path.read_text(encoding="utf-8"))
    assert [u["id"] for u in raw["users"]] == ["u1", "u2", "u3", "u4", "u5", "admin"]
    assert len(raw["challenges"]) == 60
    assert len(doc.challenges) == 60


@pytest.mark.parametrize(
    "content",
    [
        b"",
        b"   \n",
        b"{not json",
        b"[1, 2]",
        b"42",
        b'{"users": [{"id": "\xff\xfe"}]}',
        b"[" * 100_000 + b"]" * 100_000,
    ],
    ids=["empty", "blank", "broken", "list", "scalar", "invalid-utf8", "deep-nesting"],
)
def test_unreadable_file_yields_defaults(tmp_path, content) -> None:
    path = tmp_path / "app_data.json"
    path.write_bytes(content)
    doc = DocumentStore(path).load()
    assert len(doc.users) == 6
    assert doc.has_admin()
    # load never rewrites the file
    assert path.read_bytes() == content


def test_persistence_across_instances(tmp_path) -> None:
    path = tmp_path / "app_data.json"

    def add_party(doc):
        doc.parties.append(Party(id="p1", name="Fête"))
        return "done"

    assert DocumentStore(path).mutate(add_party) == "done"
    text = path.read_text(encoding="utf-8")
    assert "Fête" in text
    assert text.startswith("{\n  ")

    doc = DocumentStore(path).load()
    assert [p.name for p in doc.parties] == ["Fête"]


def test_mutate_does_not_save_on_error(store, data_path) -> None:
    store.ensure_storage()
    before = data_path.read_text(encoding="utf-8")

    def failing(doc):
        doc.parties.append(Party(id="p1"))
        raise ValidationError("non")

    with pytest.raises(ValidationError):
        store.mutate(failing)
    assert data_path.read_text(encoding="utf-8") == before


def test_save_normalizes(tmp_path) -> None:
    store = DocumentStore(tmp_path / "app_data.json")
    doc = store.load()
    doc.users = [u for u in doc.users if not u.is_admin]
    saved = store.save(doc)
    assert saved.has_admin()
    assert store.load().has_admin()


def test_unwritable_path_raises_persistence_error(tmp_path) -> None:
    target = tmp_path / "is_a_dir"
    target.mkdir()
    store = DocumentStore(target)
    with pytest.raises(PersistenceError):
        store.save(DocumentStore(tmp_path / "ok.json").load())


def test_export_json_round_trips(store) -> None:
    exported = json.loads(store.export_json())
    assert exported == store.load().to_json()
