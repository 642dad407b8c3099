"""Shared fixtures for tests."""

from __future__ import annotations

import logging
import uuid

import pytest

from remote_content_by_folder.config import Preferences
from remote_content_by_folder.errors import HostApiError
from remote_content_by_folder.models import Account, Folder, Message, Page, Policy


class FakeClock:
    """Manually advanced clock; callbacks fire in deadline order."""

    def __init__(self, start_ms: float = 1_000_000) -> None:
        self.now = start_ms
        self.timers: dict[int, tuple[float, object]] = {}
        self._next_handle = 0

    def now_ms(self) -> float:
        return self.now

    def schedule(self, delay_ms, callback) -> int:
        self._next_handle += 1
        self.timers[self._next_handle] = (self.now + delay_ms, callback)
        return self._next_handle

    def cancel(self, handle) -> None:
        self.timers.pop(handle, None)

    def advance(self, ms: float) -> None:
        target = self.now + ms
        while True:
            due = [(when, h) for h, (when, _) in self.timers.items() if when <= target]
            if not due:
                break
            when, handle = min(due)
            _, callback = self.timers.pop(handle)
            self.now = when
            callback()
        self.now = target


class InMemoryMailStore:
    """Mail store holding folders and message ids in memory, paging by page_size."""

    def __init__(self, page_size: int = 3) -> None:
        self.page_size = page_size
        self.accounts: list[Account] = []
        self.contents: dict[tuple[str, str], list[int]] = {}
        self.failing_accounts: set[str] = set()
        self.failing_folders: set[str] = set()
        self.list_calls: list[str] = []
        self._cursors: dict[str, tuple[Folder, int]] = {}

    def add_folder(self, account_name: str, path: str, name: str | None = None, ids=()) -> Folder:
        account = next((a for a in self.accounts if a.name == account_name), None)
        if account is None:
            account = Account(id=f"acct-{account_name}", name=account_name)
            self.accounts.append(account)
        folder = Folder(account_id=account.id, path=path, name=name or path.rsplit("/", 1)[-1], id=path)
        account.folders.append(folder)
        self.contents[(account.id, path)] = list(ids)
        return folder

    def deliver(self, folder: Folder, *ids: int) -> Page:
        self.contents[(folder.account_id, folder.path)].extend(ids)
        return Page(messages=[Message(id=i, folder=folder) for i in ids])

    async def list_accounts(self) -> list[Account]:
        return self.accounts

    async def list_messages(self, folder: Folder) -> Page:
        self.list_calls.append(folder.path)
        if folder.account_id in self.failing_accounts:
            raise RuntimeError(f"account {folder.account_id} is broken")
        if folder.path in self.failing_folders:
            raise HostApiError(f"cannot list {folder.path}")
        return self._page(folder, 0)

    async def continue_list(self, token: str) -> Page:
        folder, offset = self._cursors.pop(token)
        return self._page(folder, offset)

    async def get_message(self, message_id: int) -> Message:
        for account in self.accounts:
            for folder in account.folders:
                if message_id in self.contents[(account.id, folder.path)]:
                    return Message(id=message_id, folder=folder, subject=f"Subject {message_id}",
                                   author="Sender <sender@example.com>", header_message_id=f"<{message_id}@example.com>")
        raise HostApiError(f"no message {message_id}")

    def _page(self, folder: Folder, offset: int) -> Page:
        ids = self.contents[(folder.account_id, folder.path)]
        chunk = ids[offset:offset + self.page_size]
        token = None
        if offset + self.page_size < len(ids):
            token = uuid.uuid4().hex
            self._cursors[token] = (folder, offset + self.page_size)
        return Page(messages=[Message(id=i, folder=folder) for i in chunk], continuation_token=token)


class InMemoryPolicyStore:
    def __init__(self) -> None:
        self.policies: dict[int, Policy] = {}
        self.set_calls: list[tuple[int, Policy]] = []
        self.reloaded: list[int] = []

    async def get_policy(self, message_id: int) -> Policy:
        return self.policies.get(message_id, Policy.NONE)

    async def set_policy(self, message_id: int, policy: Policy) -> None:
        self.set_calls.append((message_id, policy))
        self.policies[message_id] = policy

    async def reload_view(self, view_id: int) -> None:
        self.reloaded.append(view_id)


@pytest.fixture(autouse=True)
def _restore_package_logger():
    logger = logging.getLogger("remote_content_by_folder")
    handlers, propagate, level = list(logger.handlers), logger.propagate, logger.level
    yield
    logger.handlers[:] = handlers
    logger.propagate = propagate
    logger.setLevel(level)


@pytest.fixture
def prefs(tmp_path) -> Preferences:
    return Preferences(path=tmp_path / "prefs.json")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mail_store() -> InMemoryMailStore:
    return InMemoryMailStore()


@pytest.fixture
def policy_store() -> InMemoryPolicyStore:
    return InMemoryPolicyStore()
