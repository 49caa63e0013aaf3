import json
import os

import pytest

from personal_log.exceptions import EntryStoreError


def test_load_all_creates_empty_document(entry_store):
    assert entry_store.load_all() == []
    assert json.loads(entry_store.path.read_text(encoding="utf-8")) == []


def test_save_then_load_round_trip(entry_store, sample_entry):
    entry_store.save_all([sample_entry])

    loaded = entry_store.load_all()

    assert loaded == [sample_entry]
    assert [d.id for d in loaded[0].display_order] == ["display-b1", "display-abc123", "display-b2"]


def test_save_replaces_whole_document(entry_store, sample_entry):
    entry_store.save_all([sample_entry])
    entry_store.save_all([])

    assert entry_store.load_all() == []


def test_at_most_one_entry_per_date_after_load(entry_store, sample_entry):
    entry_store.save_all([sample_entry])

    dates = [e.date for e in entry_store.load_all()]

    assert len(dates) == len(set(dates))


def test_save_rejects_duplicate_dates(entry_store, sample_entry):
    with pytest.raises(ValueError):
        entry_store.save_all([sample_entry, sample_entry])
    assert not entry_store.path.exists()


def test_malformed_json_raises_instead_of_returning_empty(entry_store):
    entry_store.path.parent.mkdir(parents=True)
    entry_store.path.write_text("{not json", encoding="utf-8")

    with pytest.raises(EntryStoreError):
        entry_store.load_all()


def test_non_array_document_raises(entry_store):
    entry_store.path.parent.mkdir(parents=True)
    entry_store.path.write_text('{"entries": []}', encoding="utf-8")

    with pytest.raises(EntryStoreError):
        entry_store.load_all()


def test_wrongly_typed_fields_raise(entry_store):
    entry_store.path.parent.mkdir(parents=True)
    entry_store.path.write_text('[{"id": "1", "date": "2024-01-15", "title": 7}]', encoding="utf-8")

    with pytest.raises(EntryStoreError):
        entry_store.load_all()


def test_failed_write_keeps_previous_document(entry_store, sample_entry, monkeypatch):
    entry_store.save_all([sample_entry])
    before = entry_store.path.read_text(encoding="utf-8")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(EntryStoreError):
        entry_store.save_all([])

    assert entry_store.path.read_text(encoding="utf-8") == before
    leftovers = [p.name for p in entry_store.path.parent.iterdir() if p.name != "entries.json"]
    assert leftovers == []
