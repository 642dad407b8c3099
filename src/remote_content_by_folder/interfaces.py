"""Collaborators the scanning engine depends on.

The engine never talks to a mail host directly; it is handed objects that
satisfy these protocols. ``gmail_client`` provides the Gmail implementations.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from .models import Account, Folder, Message, Page, Policy

NewMailCallback = Callable[[Folder, Page], Awaitable[None]]
OnlineCallback = Callable[[], None]


class MailStore(Protocol):
    async def list_accounts(self) -> list[Account]: ...

    async def list_messages(self, folder: Folder) -> Page: ...

    async def continue_list(self, token: str) -> Page: ...

    async def get_message(self, message_id: int) -> Message: ...


class PolicyStore(Protocol):
    async def get_policy(self, message_id: int) -> Policy: ...

    async def set_policy(self, message_id: int, policy: Policy) -> None: ...

    async def reload_view(self, view_id: int) -> None: ...


class NotificationFeed(Protocol):
    """Best-effort source of new-mail events; may drop or repeat them."""

    def subscribe(self, on_new_mail: NewMailCallback) -> None: ...

    def subscribe_online(self, on_online: OnlineCallback) -> None: ...
