#!/usr/bin/env python3
"""
Tests for key-value storage, corruption scrubbing and voice settings
"""

import json

import pytest

from vidvoice.services.settings import SETTINGS_KEY, VoiceSettings
from vidvoice.services.storage import JsonFileStore, MemoryStore, looks_corrupted, safe_json_parse


@pytest.mark.parametrize("value", [
    "[object Object]",
    '{"a": undefined}',
    '{"volume": NaN}',
    "Voice commands import error",
    "true",
    "hello world",
    "12345678901",
    '{"a": }',
])
def test_corrupted_values(value):
    assert looks_corrupted(value)


@pytest.mark.parametrize("value", ['{"a": 1}', "[1, 2, 3]", "42", "", None])
def test_valid_values(value):
    assert not looks_corrupted(value)


def test_safe_json_parse():
    assert safe_json_parse('{"a": 1}') == {"a": 1}
    assert safe_json_parse(" [1] ") == [1]
    assert safe_json_parse("[object Object]", fallback=[]) == []
    assert safe_json_parse('{"a": ', fallback={}) == {}
    assert safe_json_parse(None, fallback="x") == "x"
    assert safe_json_parse("42", fallback=None) is None


def test_get_item_deletes_corrupted_value(logger):
    store = MemoryStore({"bad": "[object Object]", "good": '{"ok": true}'}, logger=logger)

    assert store.get_item("bad") is None
    assert "bad" not in store.keys()
    assert store.get_item("good") == '{"ok": true}'


def test_invalid_keys_are_rejected():
    store = MemoryStore()
    store.set_item("  ", "[]")
    assert store.keys() == []
    assert store.get_item("") is None


def test_clear_corrupted_data():
    store = MemoryStore({
        "a": "undefined",
        "b": '{"fine": 1}',
        "c": "{broken}",
        "d": "[1, 2]",
    })
    removed = store.clear_corrupted_data()

    assert sorted(removed) == ["a", "c"]
    assert sorted(store.keys()) == ["b", "d"]


def test_json_file_store_persists(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileStore(str(path))
    store.set_json("customCommands", [{"name": "Quiet"}])

    reopened = JsonFileStore(str(path))
    assert reopened.get_json("customCommands") == [{"name": "Quiet"}]

    reopened.remove_item("customCommands")
    assert JsonFileStore(str(path)).keys() == []


def test_json_file_store_ignores_unreadable_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("not json at all")

    store = JsonFileStore(str(path))
    assert store.keys() == []
    store.set_item("k", "[]")
    assert json.loads(path.read_text()) == {"k": "[]"}


def test_settings_defaults(store, logger):
    data = VoiceSettings(store, logger).load()
    assert data.always_listening is False
    assert data.usage_count == 0


def test_settings_read_modify_write(store, logger):
    settings = VoiceSettings(store, logger)
    settings.save(usage_count=7)
    settings.save(always_listening=True)

    data = settings.load()
    assert data.always_listening is True
    assert data.usage_count == 7
    assert json.loads(store.get_item(SETTINGS_KEY)) == {"alwaysListening": True, "usageCount": 7}


def test_settings_invalid_types_fall_back(logger):
    store = MemoryStore({SETTINGS_KEY: json.dumps({"alwaysListening": "yes", "usageCount": -4})})
    data = VoiceSettings(store, logger).load()
    assert data.always_listening is False
    assert data.usage_count == 0


def test_settings_increment_usage(store, logger):
    settings = VoiceSettings(store, logger)
    assert settings.increment_usage() == 1
    assert settings.increment_usage(3) == 4
