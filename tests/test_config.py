"""Tests for the preferences module."""

import json

import pytest

from remote_content_by_folder.config import Preferences, coerce_pref
from remote_content_by_folder.constants import PREF_DEFAULTS
from remote_content_by_folder.errors import ConfigError
from remote_content_by_folder.models import RuleSet


def test_defaults_without_file(prefs):
    assert prefs.all() == PREF_DEFAULTS
    assert prefs.rule_set() == RuleSet()


def test_set_and_get_round_trip(prefs):
    prefs.set("allow_regexp", "^Inbox")
    prefs.set("block_first", "true")
    prefs.set("debug_level", "2")

    assert prefs.get("allow_regexp") == "^Inbox"
    assert prefs.get("block_first") is True
    assert prefs.get("debug_level") == 2
    assert prefs.rule_set() == RuleSet(allow_regexp="^Inbox", block_first=True)


def test_values_are_read_fresh_from_disk(tmp_path):
    path = tmp_path / "prefs.json"
    prefs = Preferences(path=path)
    assert prefs.get("block_regexp") == ""

    path.write_text(json.dumps({"block_regexp": "Junk"}))

    assert prefs.get("block_regexp") == "Junk"


def test_invalid_regexp_is_rejected(prefs):
    with pytest.raises(ConfigError):
        prefs.set("scan_regexp", "(")
    assert prefs.get("scan_regexp") == ""


def test_unknown_preference(prefs):
    with pytest.raises(KeyError):
        prefs.get("nope")
    with pytest.raises(KeyError):
        prefs.set("nope", "1")


def test_reset_restores_default(prefs):
    prefs.set("debug", "yes")
    assert prefs.get("debug") is True
    prefs.reset("debug")
    assert prefs.get("debug") is False


def test_only_changed_values_are_written(prefs):
    prefs.set("allow_regexp", "x")
    prefs.set("debug", False)
    assert json.loads(prefs.path.read_text()) == {"allow_regexp": "x"}


def test_malformed_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json")
    prefs = Preferences(path=path)
    assert prefs.get("debug") is False


def test_unknown_keys_in_file_are_ignored(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"allow_regexp": "a", "legacy": 1}))
    assert Preferences(path=path).all()["allow_regexp"] == "a"


def test_coerce_bool_values():
    assert coerce_pref("debug", "On") is True
    assert coerce_pref("debug", "0") is False
    assert coerce_pref("debug", 1) is True
    with pytest.raises(ConfigError):
        coerce_pref("debug", "maybe")


def test_coerce_int_values():
    assert coerce_pref("debug_level", "1") == 1
    with pytest.raises(ConfigError):
        coerce_pref("debug_level", "high")
