"""Data models for Remote Content By Folder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Policy(str, Enum):
    """Remote content policy of a single message."""

    NONE = "None"
    BLOCK = "Block"
    ALLOW = "Allow"


@dataclass(frozen=True)
class FolderRef:
    """Identity of a folder: the account it belongs to and its path."""

    account_id: str
    path: str


@dataclass
class Folder:
    """A folder as reported by the mail store."""

    account_id: str
    path: str
    name: str
    id: str = ""  # host handle used to list the folder

    @property
    def ref(self) -> FolderRef:
        return FolderRef(self.account_id, self.path)


@dataclass
class Account:
    id: str
    name: str
    folders: list[Folder] = field(default_factory=list)


@dataclass
class Message:
    """A message in a folder listing.

    Only ``id`` identifies the message; the other fields are diagnostics.
    """

    id: int
    folder: Folder
    subject: str = ""
    author: str = ""
    header_message_id: str = ""


@dataclass
class Page:
    """One page of a folder listing."""

    messages: list[Message] = field(default_factory=list)
    continuation_token: str | None = None


@dataclass(frozen=True)
class RuleSet:
    allow_regexp: str = ""
    block_regexp: str = ""
    block_first: bool = False


@dataclass
class ScanResult:
    """Counters reported by a single scan pass."""

    reason: str
    folders_scanned: int = 0
    messages_scanned: int = 0
    messages_changed: int = 0
    messages_skipped: int = 0  # already seen
    account_errors: int = 0
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    finished_at: str = ""


@dataclass(frozen=True)
class Anomaly:
    """Evidence that the notification feed dropped or duplicated an event."""

    message: str
    detected_at: str = field(default_factory=lambda: datetime.now().isoformat())
