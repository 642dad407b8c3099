"""Exception types for Remote Content By Folder."""

from __future__ import annotations


class RemoteContentError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(RemoteContentError):
    """A preference holds a value that cannot be used, e.g. a bad regexp."""

    def __init__(self, pref_name: str, value: object, reason: str) -> None:
        self.pref_name = pref_name
        self.value = value
        self.reason = reason
        super().__init__(f'Invalid {pref_name}: "{value}" ({reason})')


class HostApiError(RemoteContentError):
    """The mail host failed to list, fetch or update messages."""
