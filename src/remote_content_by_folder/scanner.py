"""Scan orchestration - walks accounts and folders, applies folder policies."""

from __future__ import annotations

import logging
import re
from collections import deque
from datetime import datetime
from typing import AsyncIterator, Callable, Collection

from .config import Preferences
from .constants import ANOMALY_HISTORY_LIMIT, DEBUG_PREF, DESCRIBED_MESSAGES_LIMIT, SCAN_PREF
from .errors import ConfigError, HostApiError
from .interfaces import MailStore, PolicyStore
from .log import debug
from .models import Account, Anomaly, Folder, FolderRef, Message, Page, Policy, ScanResult
from .policy import classify, compile_expression
from .sequence_set import SequenceSet

logger = logging.getLogger(__name__)


def folder_path(account: Account | None, folder: Folder) -> str:
    """Fully qualified folder path used in log messages."""
    name = account.name if account else folder.account_id
    return f"{name}{folder.path}"


class FolderScanner:
    """Finds messages that have not been handled yet and sets their policy.

    ``seen`` records every message id that has been handled, whether it came
    from a background scan or from a new-mail notification. Folders that have
    been scanned completely at least once are remembered so that a message
    showing up there later without a notification can be reported.
    """

    def __init__(
        self,
        mail_store: MailStore,
        policy_store: PolicyStore,
        prefs: Preferences,
        seen: SequenceSet | None = None,
        on_anomaly: Callable[[Anomaly], None] | None = None,
    ) -> None:
        self.mail_store = mail_store
        self.policy_store = policy_store
        self.prefs = prefs
        self.seen = seen if seen is not None else SequenceSet()
        self.on_anomaly = on_anomaly
        self.scanned_folders: set[FolderRef] = set()
        self.anomalies: deque[Anomaly] = deque(maxlen=ANOMALY_HISTORY_LIMIT)

    # --- listings ---

    async def iter_messages(self, first_page: Page) -> AsyncIterator[Message]:
        """Yield every message of a listing, fetching further pages on demand."""
        page = first_page
        for message in page.messages:
            yield message
        while page.continuation_token:
            page = await self.mail_store.continue_list(page.continuation_token)
            for message in page.messages:
                yield message

    # --- background scans ---

    async def scan_once(
        self,
        reason: str,
        now_folders: Collection[FolderRef] = (),
        filter_regexp: str | None = None,
    ) -> ScanResult:
        """Run one pass over every eligible folder of every account.

        A folder is eligible when ``filter_regexp`` matches its name or its
        ref is in ``now_folders``. Raises ConfigError, before any folder is
        visited, when ``filter_regexp`` is not a valid expression.
        """
        if filter_regexp is None:
            filter_regexp = self.prefs.get(SCAN_PREF)
        pattern = compile_expression(filter_regexp, SCAN_PREF)
        now_refs = set(now_folders)

        result = ScanResult(reason=reason)
        accounts = await self.mail_store.list_accounts()

        for account in accounts:
            try:
                await self._scan_account(account, pattern, now_refs, result)
            except Exception:
                logger.exception("Scan error for account %s", account.name)
                result.account_errors += 1

        result.finished_at = datetime.now().isoformat()
        return result

    async def _scan_account(
        self,
        account: Account,
        pattern: re.Pattern[str] | None,
        now_refs: set[FolderRef],
        result: ScanResult,
    ) -> None:
        for folder in account.folders:
            if not ((pattern is not None and pattern.search(folder.name)) or folder.ref in now_refs):
                continue

            fqp = folder_path(account, folder)
            try:
                scanned, changed, skipped = await self._scan_folder(folder, fqp, result.reason)
            except HostApiError as e:
                logger.error("Failed to scan %s: %s", fqp, e)
                continue

            self.scanned_folders.add(folder.ref)
            result.folders_scanned += 1
            result.messages_scanned += scanned
            result.messages_changed += changed
            result.messages_skipped += skipped

            msg = f"Scanned {scanned} messages in {fqp}, changed {changed}, skipped previously seen {skipped}"
            if scanned:
                logger.info(msg)
            elif changed or skipped:
                debug(logger, 1, msg)

    async def _scan_folder(self, folder: Folder, fqp: str, reason: str) -> tuple[int, int, int]:
        debug(logger, 1, "Scanning for new messages in %s", fqp)
        fully_scanned_before = folder.ref in self.scanned_folders
        scanned = changed = skipped = 0

        async for message in self.iter_messages(await self.mail_store.list_messages(folder)):
            if message.id in self.seen:
                skipped += 1
                continue

            scanned += 1
            if fully_scanned_before:
                await self.register_anomaly(
                    f"Found new {await self.describe_message(message)} in {fqp} after first "
                    "full scan of that folder; we should have been notified about it"
                )
            if await self.check_message(message):
                debug(logger, 1, "Changed message in %s scan", reason)
                changed += 1
            self.seen.add(message.id)

        return scanned, changed, skipped

    # --- notifications ---

    async def check_new_messages(self, folder: Folder, page: Page) -> int:
        """Handle messages delivered by a new-mail notification.

        Returns the number of messages whose policy was changed.
        """
        fqp = folder_path(None, folder)
        messages = [message async for message in self.iter_messages(page)]
        if self._debugging():
            debug(logger, 1, "New mail in %s: [%s]", fqp, ", ".join(await self.describe_messages(messages)))

        changed = 0
        for message in messages:
            if message.id in self.seen:
                await self.register_anomaly(
                    f"We've already seen supposedly new {await self.describe_message(message)} in {fqp}"
                )
                continue
            policy = await self.check_message(message)
            if policy:
                changed += 1
                await self._reload_view(message)
            self.seen.add(message.id)
        return changed

    async def _reload_view(self, message: Message) -> None:
        try:
            await self.policy_store.reload_view(message.id)
        except Exception as e:
            # Reloading is best-effort; the policy itself is already stored.
            debug(logger, 1, "Could not reload view for message %s: %s", message.id, e)

    # --- policy ---

    async def check_message(self, message: Message) -> Policy | None:
        """Apply the folder policy to a message whose policy is still unset.

        Returns the policy that was set, or None when nothing changed.
        """
        current = await self.policy_store.get_policy(message.id)
        if current is not Policy.NONE:
            debug(
                logger, 2, 'Content policy for %s is set to "%s", not modifying',
                await self._label(message), current.value,
            )
            return None

        try:
            rules = self.prefs.rule_set()
        except ConfigError as e:
            logger.error("Not classifying %s: %s", message.id, e)
            return None

        requested = classify(message.folder.name, rules)
        if requested is Policy.NONE or requested is current:
            return None

        debug(
            logger, 1, 'Switching content policy for %s from "%s" to "%s"',
            await self._label(message), current.value, requested.value,
        )
        await self.policy_store.set_policy(message.id, requested)
        return requested

    # --- diagnostics ---

    async def register_anomaly(self, msg: str) -> Anomaly:
        anomaly = Anomaly(message=msg)
        logger.warning(msg)
        self.anomalies.append(anomaly)
        if self.on_anomaly:
            self.on_anomaly(anomaly)
        return anomaly

    def _debugging(self) -> bool:
        try:
            return bool(self.prefs.get(DEBUG_PREF))
        except ConfigError:
            # Same as the log filter: an unreadable debug flag means debug on.
            return True

    async def _label(self, message: Message) -> str:
        """Full description when debugging, otherwise just the id."""
        if self._debugging():
            return await self.describe_message(message)
        return str(message.id)

    @property
    def last_anomaly(self) -> Anomaly | None:
        return self.anomalies[-1] if self.anomalies else None

    async def describe_message(self, message: Message) -> str:
        """Describe a message for log output, re-fetching it if the listing had no metadata."""
        if not (message.header_message_id or message.subject or message.author):
            try:
                message = await self.mail_store.get_message(message.id)
            except Exception as e:
                debug(logger, 2, "Refetching message %s for its metadata failed: %s", message.id, e)
                return str(message.id)
            if not (message.header_message_id or message.subject or message.author):
                return str(message.id)
        return f'{message.id} {message.header_message_id} "{message.subject}" {message.author}'

    async def describe_messages(self, messages: list[Message]) -> list[str]:
        descriptions = [await self.describe_message(m) for m in messages[:DESCRIBED_MESSAGES_LIMIT]]
        descriptions.extend(str(m.id) for m in messages[DESCRIBED_MESSAGES_LIMIT:])
        return descriptions
