"""Preference storage for Remote Content By Folder.

Preferences live in a small JSON file. Every read merges the declared defaults
with the file contents, so edits made by another process (or by the ``config``
command while the service is running) apply on the next evaluation.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from remote_content_by_folder import constants
from remote_content_by_folder.errors import ConfigError
from remote_content_by_folder.models import RuleSet
from remote_content_by_folder.policy import compile_expression

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def coerce_pref(name: str, value: Any) -> Any:
    """Convert ``value`` to the type of the preference's declared default."""
    default = constants.PREF_DEFAULTS[name]

    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return bool(value)
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ConfigError(name, value, "expected a boolean")

    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(name, value, "expected an integer") from e

    return "" if value is None else str(value)


class Preferences:
    """Key/value preference store with declared defaults."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path or constants.PREFS_PATH)
        self._reported_mtime: float | None = None

    def _load(self) -> dict[str, Any]:
        values = dict(constants.PREF_DEFAULTS)
        if not self.path.exists():
            return values

        try:
            with open(self.path, encoding="utf-8") as f:
                stored = json.load(f)
        except json.JSONDecodeError as e:
            self._report_once(f"Error parsing {self.path}: {e}, using default preferences")
            return values

        if not isinstance(stored, dict):
            self._report_once(f"{self.path} does not hold a JSON object, using default preferences")
            return values

        for name, value in stored.items():
            if name in values:
                values[name] = value
        return values

    def _report_once(self, msg: str) -> None:
        # The log filter reads preferences too; only report each broken file
        # version once so logging cannot recurse.
        mtime = self.path.stat().st_mtime
        if mtime != self._reported_mtime:
            self._reported_mtime = mtime
            logger.error(msg)

    # --- public API ---

    def get(self, name: str) -> Any:
        if name not in constants.PREF_DEFAULTS:
            raise KeyError(f"Unknown preference: {name}")
        return coerce_pref(name, self._load()[name])

    def all(self) -> dict[str, Any]:
        return {name: self.get(name) for name in constants.PREF_DEFAULTS}

    def set(self, name: str, value: Any) -> Any:
        """Validate, coerce and store a preference. Returns the stored value."""
        if name not in constants.PREF_DEFAULTS:
            raise KeyError(f"Unknown preference: {name}")
        value = coerce_pref(name, value)
        if name in constants.REGEXP_PREFS:
            compile_expression(value, name)
        self._write({**self._load(), name: value})
        return value

    def reset(self, name: str) -> None:
        if name not in constants.PREF_DEFAULTS:
            raise KeyError(f"Unknown preference: {name}")
        stored = self._load()
        stored.pop(name, None)
        self._write(stored)

    def rule_set(self) -> RuleSet:
        """Build the classification rules from the current preference values."""
        return RuleSet(
            allow_regexp=self.get(constants.ALLOW_PREF),
            block_regexp=self.get(constants.BLOCK_PREF),
            block_first=self.get(constants.BLOCK_FIRST_PREF),
        )

    # --- internals ---

    def _write(self, values: dict[str, Any]) -> None:
        """Write the values that differ from their defaults."""
        changed = {k: v for k, v in values.items() if v != constants.PREF_DEFAULTS[k]}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(changed, f, indent=2)
