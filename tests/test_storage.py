"""Tests for velvet.storage: slugify and the JSON memory store."""

import json

import pytest
from pydantic import ValidationError

from velvet.models import MemoryEvent
from velvet.storage import MemoryStore, slugify


def _event(i: int, **fields) -> MemoryEvent:
    return MemoryEvent(id=f"e{i}", type="CHAT", detail=f"detail {i}", **fields)


def _stored_files(data_dir) -> list:
    return sorted((data_dir / "memory").glob("*.json"))


# ── slugify ──────────────────────────────────────────────────


def test_slugify_basic():
    assert slugify("Ada Lovelace") == "ada-lovelace"


def test_slugify_strips_accents_and_quotes():
    assert slugify("Zoë O'Brien") == "zoe-obrien"


def test_slugify_empty_falls_back():
    assert slugify("!!!") == "anonymous"


# ── MemoryStore ──────────────────────────────────────────────


def test_store_creates_memory_dir(tmp_path):
    MemoryStore(tmp_path / "data")
    assert (tmp_path / "data" / "memory").is_dir()


def test_load_missing_returns_empty(store):
    assert store.load("Nobody") == []


def test_save_and_load_round_trip(store):
    events = [_event(1), _event(2, status="confirmed"), _event(3, status="failed")]
    store.save("Ada", events)
    loaded = store.load("Ada")
    assert loaded == events
    assert [e.status for e in loaded] == ["pending", "confirmed", "failed"]


def test_saved_file_uses_camel_case(store, data_dir):
    store.save("Ada Lovelace", [_event(1, context_summary="COMPLETE")])
    (path,) = _stored_files(data_dir)
    assert path.name.startswith("ada-lovelace-")
    raw = json.loads(path.read_text())
    assert raw[0]["contextSummary"] == "COMPLETE"


def test_records_are_keyed_by_name(store):
    store.save("Ada", [_event(1)])
    store.save("Grace", [_event(2), _event(3)])
    assert len(store.load("Ada")) == 1
    assert len(store.load("Grace")) == 2


def test_non_ascii_names_do_not_share_a_record(store, data_dir):
    store.save("李雷", [MemoryEvent(id="1", type="CHAT", detail="li lei private")])
    assert store.load("王芳") == []
    assert [e.detail for e in store.load("李雷")] == ["li lei private"]
    store.save("王芳", [_event(2)])
    assert len(_stored_files(data_dir)) == 2


def test_names_differing_in_case_or_punctuation_are_separate(store):
    store.save("Ana", [_event(1)])
    assert store.load("ana!") == []
    assert store.load("ana") == []
    assert store.clear("ana") is False
    assert len(store.load("Ana")) == 1


def test_clear(store):
    store.save("Ada", [_event(1)])
    assert store.clear("Ada") is True
    assert store.load("Ada") == []
    assert store.clear("Ada") is False


def test_malformed_json_raises(store, data_dir):
    store.save("Ada", [_event(1)])
    (path,) = _stored_files(data_dir)
    path.write_text("{not json")
    with pytest.raises(json.JSONDecodeError):
        store.load("Ada")


def test_invalid_record_raises(store, data_dir):
    store.save("Ada", [_event(1)])
    (path,) = _stored_files(data_dir)
    path.write_text(json.dumps([{"id": "x", "type": "LIKE"}]))
    with pytest.raises(ValidationError):
        store.load("Ada")
