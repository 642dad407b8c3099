"""Gmail implementations of the mail store, policy store and notification feed.

Gmail has no folders; labels play that role. A message's remote content policy
is recorded with two dedicated labels. Gmail message ids are hexadecimal
strings and are converted to integers for the seen set.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

import httplib2
from google.auth.exceptions import TransportError
from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from remote_content_by_folder.constants import (
    ALLOW_LABEL,
    BLOCK_LABEL,
    HISTORY_PAGE_SIZE,
    HISTORY_POLL_SECONDS,
    METADATA_HEADERS,
    PAGE_SIZE,
)
from remote_content_by_folder.errors import HostApiError
from remote_content_by_folder.interfaces import NewMailCallback, OnlineCallback
from remote_content_by_folder.log import debug
from remote_content_by_folder.models import Account, Folder, Message, Page, Policy

logger = logging.getLogger(__name__)

# System labels that describe message state rather than a location.
SKIPPED_LABELS = {"UNREAD", "STARRED", "IMPORTANT", "CHAT"}
POLICY_LABELS = {ALLOW_LABEL: Policy.ALLOW, BLOCK_LABEL: Policy.BLOCK}

# Raised instead of HttpError when Gmail cannot be reached at all.
TRANSPORT_ERRORS = (httplib2.HttpLib2Error, TransportError, OSError)


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in (429, 500, 503)


def to_message_id(gmail_id: str) -> int:
    return int(gmail_id, 16)


def to_gmail_id(message_id: int) -> str:
    return format(message_id, "x")


@retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)
def _execute(request) -> dict:
    return request.execute()


class GmailApi:
    """Runs Gmail requests off the event loop.

    The client library is not thread-safe, so every request goes through the
    same single worker thread.
    """

    def __init__(self, service) -> None:
        self.service = service
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gmail")

    async def execute(self, build_request: Callable[[Any], Any]) -> dict:
        """Build a request from ``service.users()`` and execute it with retries."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._executor, lambda: _execute(build_request(self.service.users()))
            )
        except HttpError as e:
            raise HostApiError(f"Gmail API request failed: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise HostApiError(f"Cannot reach Gmail: {e!r}") from e

    def close(self) -> None:
        self._executor.shutdown(wait=False)


class GmailMailStore:
    """Lists the labels and messages of the authenticated Gmail account."""

    def __init__(self, api: GmailApi, page_size: int = PAGE_SIZE) -> None:
        self.api = api
        self.page_size = page_size
        self.account_id = ""
        self._folders: dict[str, Folder] = {}
        self._cursors: dict[str, tuple[Folder, str]] = {}

    async def list_accounts(self) -> list[Account]:
        profile = await self.api.execute(lambda users: users.getProfile(userId="me"))
        self.account_id = profile["emailAddress"]

        resp = await self.api.execute(lambda users: users.labels().list(userId="me"))
        folders = []
        for label in resp.get("labels", []):
            if label["id"] in SKIPPED_LABELS or label["name"] in POLICY_LABELS:
                continue
            folders.append(
                Folder(
                    account_id=self.account_id,
                    path=f"/{label['name']}",
                    name=label["name"],
                    id=label["id"],
                )
            )
        self._folders = {f.id: f for f in folders}
        return [Account(id=self.account_id, name=self.account_id, folders=folders)]

    async def folder_for_labels(self, label_ids: list[str]) -> Folder | None:
        """Pick the folder a message carrying ``label_ids`` belongs to.

        A message can carry several folder labels (e.g. INBOX and a category);
        the first one in label listing order wins.
        """
        if not self._folders:
            await self.list_accounts()
        wanted = set(label_ids)
        return next((f for f in self._folders.values() if f.id in wanted), None)

    async def list_messages(self, folder: Folder) -> Page:
        # Drop cursors of an earlier listing of this folder that was abandoned.
        self._cursors = {t: c for t, c in self._cursors.items() if c[0].id != folder.id}
        return await self._list_page(folder, None)

    async def continue_list(self, token: str) -> Page:
        try:
            folder, page_token = self._cursors.pop(token)
        except KeyError as e:
            raise HostApiError(f"Unknown or already consumed listing token: {token}") from e
        return await self._list_page(folder, page_token)

    async def _list_page(self, folder: Folder, page_token: str | None) -> Page:
        kwargs: dict = {
            "userId": "me",
            "labelIds": [folder.id],
            "maxResults": self.page_size,
            "fields": "messages/id,nextPageToken",
        }
        if page_token:
            kwargs["pageToken"] = page_token

        resp = await self.api.execute(lambda users: users.messages().list(**kwargs))
        messages = [Message(id=to_message_id(m["id"]), folder=folder) for m in resp.get("messages", [])]

        token = None
        if resp.get("nextPageToken"):
            token = uuid.uuid4().hex
            self._cursors[token] = (folder, resp["nextPageToken"])
        return Page(messages=messages, continuation_token=token)

    async def get_message(self, message_id: int) -> Message:
        resp = await self.api.execute(
            lambda users: users.messages().get(
                userId="me",
                id=to_gmail_id(message_id),
                format="metadata",
                metadataHeaders=METADATA_HEADERS,
            )
        )
        headers = {h["name"].lower(): h["value"] for h in resp.get("payload", {}).get("headers", [])}

        folder = await self.folder_for_labels(resp.get("labelIds", []))
        if folder is None:
            folder = Folder(account_id=self.account_id, path="/", name="")

        return Message(
            id=message_id,
            folder=folder,
            subject=headers.get("subject", ""),
            author=headers.get("from", ""),
            header_message_id=headers.get("message-id", ""),
        )


class GmailPolicyStore:
    """Stores the remote content policy of a message as a Gmail label."""

    def __init__(self, api: GmailApi) -> None:
        self.api = api
        self._label_ids: dict[Policy, str] = {}

    async def _policy_labels(self) -> dict[Policy, str]:
        """Map policies to label ids, creating the labels on first use."""
        if self._label_ids:
            return self._label_ids

        resp = await self.api.execute(lambda users: users.labels().list(userId="me"))
        by_name = {label["name"]: label["id"] for label in resp.get("labels", [])}

        label_ids: dict[Policy, str] = {}
        for name, policy in POLICY_LABELS.items():
            if name not in by_name:
                body = {"name": name, "labelListVisibility": "labelShow", "messageListVisibility": "show"}
                created = await self.api.execute(
                    lambda users, body=body: users.labels().create(userId="me", body=body)
                )
                by_name[name] = created["id"]
                logger.info("Created label %s", name)
            label_ids[policy] = by_name[name]

        self._label_ids = label_ids
        return label_ids

    async def get_policy(self, message_id: int) -> Policy:
        label_ids = await self._policy_labels()
        resp = await self.api.execute(
            lambda users: users.messages().get(
                userId="me", id=to_gmail_id(message_id), format="minimal", fields="labelIds"
            )
        )
        present = set(resp.get("labelIds", []))
        for policy in (Policy.BLOCK, Policy.ALLOW):
            if label_ids[policy] in present:
                return policy
        return Policy.NONE

    async def set_policy(self, message_id: int, policy: Policy) -> None:
        label_ids = await self._policy_labels()
        body = {
            "addLabelIds": [label_ids[policy]] if policy is not Policy.NONE else [],
            "removeLabelIds": [lid for p, lid in label_ids.items() if p is not policy],
        }
        await self.api.execute(
            lambda users: users.messages().modify(userId="me", id=to_gmail_id(message_id), body=body)
        )

    async def reload_view(self, view_id: int) -> None:
        debug(logger, 2, "Gmail clients re-render on label changes, nothing to reload for %s", view_id)


class GmailNotificationFeed:
    """New-mail events derived from polling the Gmail history.

    Delivery is best-effort. When the history cannot be read the feed restarts
    from the current history id once Gmail is reachable again, so messages
    that arrived in between are only found by the periodic scan.
    """

    def __init__(
        self,
        api: GmailApi,
        mail_store: GmailMailStore,
        poll_seconds: float = HISTORY_POLL_SECONDS,
    ) -> None:
        self.api = api
        self.mail_store = mail_store
        self.poll_seconds = poll_seconds
        self.history_id: str | None = None
        self.online = True
        self._new_mail_callbacks: list[NewMailCallback] = []
        self._online_callbacks: list[OnlineCallback] = []

    def subscribe(self, on_new_mail: NewMailCallback) -> None:
        self._new_mail_callbacks.append(on_new_mail)

    def subscribe_online(self, on_online: OnlineCallback) -> None:
        self._online_callbacks.append(on_online)

    async def poll(self) -> int:
        """Deliver messages added since the last poll. Returns how many were delivered."""
        if self.history_id is None:
            profile = await self.api.execute(lambda users: users.getProfile(userId="me"))
            self.history_id = str(profile["historyId"])
            return 0

        # Gmail message id -> its labels at the time it was added
        added: dict[str, list[str]] = {}
        latest = self.history_id
        page_token: str | None = None
        while True:
            kwargs: dict = {
                "userId": "me",
                "startHistoryId": self.history_id,
                "historyTypes": ["messageAdded"],
                "maxResults": HISTORY_PAGE_SIZE,
            }
            if page_token:
                kwargs["pageToken"] = page_token

            resp = await self.api.execute(lambda users: users.history().list(**kwargs))
            for item in resp.get("history", []):
                for message_added in item.get("messagesAdded", []):
                    message = message_added["message"]
                    added.setdefault(message["id"], message.get("labelIds", []))

            latest = str(resp.get("historyId", latest))
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        self.history_id = latest

        # Each message is delivered once, under a single folder.
        pages: dict[str, Page] = {}
        for gmail_id, label_ids in added.items():
            folder = await self.mail_store.folder_for_labels(label_ids)
            if folder is None:
                continue
            page = pages.setdefault(folder.id, Page())
            page.messages.append(Message(id=to_message_id(gmail_id), folder=folder))

        delivered = 0
        for page in pages.values():
            folder = page.messages[0].folder
            delivered += len(page.messages)
            for callback in self._new_mail_callbacks:
                try:
                    await callback(folder, page)
                except Exception:
                    logger.exception("New mail handler failed for %s", folder.path)
        return delivered

    async def run(self) -> None:
        """Poll forever, reporting offline/online transitions."""
        while True:
            try:
                await self.poll()
            except HostApiError as e:
                if self.online:
                    logger.warning("Cannot read Gmail history, treating Gmail as offline: %s", e)
                self.online = False
                self.history_id = None
            else:
                if not self.online:
                    self.online = True
                    logger.info("Gmail is reachable again")
                    for callback in self._online_callbacks:
                        callback()
            await asyncio.sleep(self.poll_seconds)
