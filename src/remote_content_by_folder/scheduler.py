"""Decides when folder scans run.

The notification feed of the mail host is not reliable: it skips some folders
entirely and occasionally drops messages in the folders it does report. The
scheduler compensates with these rules:

* A new-mail notification triggers an immediate scan that covers the folders
  matching the scan filter plus every folder a notification was received for.
* Coming back online triggers a scan after a few seconds, once the host has
  had time to catch up.
* Folders are scanned at least every 60 seconds. Every scan launch re-arms the
  periodic timer, so an out-of-cycle scan pushes the next timed one back.

Only one timer is armed at any moment and only one scan runs at a time. All
methods that change the schedule are synchronous and run on the event loop,
so a decision is never interleaved with another one.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from .clock import Clock, LoopClock
from .config import Preferences
from .constants import BUSY_BACKOFF_MS, INITIAL_SCAN_MS, ONLINE_SETTLE_MS, PERIODIC_SCAN_MS, SCAN_PREF
from .errors import HostApiError
from .log import debug
from .models import Folder, FolderRef, Page, ScanResult
from .scanner import FolderScanner, folder_path

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    TIMER_ARMED = "timer_armed"
    RUNNING = "running"


class ScanScheduler:
    """Owns the scan timer, the on-deck folders and the running flag."""

    def __init__(self, scanner: FolderScanner, prefs: Preferences, clock: Clock | None = None) -> None:
        self.scanner = scanner
        self.prefs = prefs
        self.clock = clock or LoopClock()

        self._running = False
        self._timer: Any = None
        self._deadline: float | None = None
        self._task: asyncio.Task[None] | None = None

        # Folders reported by notifications wait on deck until the next scan
        # launch moves them to now_folders.
        self._on_deck: dict[FolderRef, Folder] = {}
        self._now: dict[FolderRef, Folder] = {}

        self.last_result: ScanResult | None = None
        self.scans_started = 0

    # --- state ---

    @property
    def state(self) -> SchedulerState:
        if self._running:
            return SchedulerState.RUNNING
        if self._timer is not None:
            return SchedulerState.TIMER_ARMED
        return SchedulerState.IDLE

    @property
    def running(self) -> bool:
        return self._running

    @property
    def deadline(self) -> float | None:
        """Clock time (ms) the armed timer fires at, or None when disarmed."""
        return self._deadline if self._timer is not None else None

    @property
    def on_deck(self) -> frozenset[FolderRef]:
        return frozenset(self._on_deck)

    @property
    def now_folders(self) -> frozenset[FolderRef]:
        return frozenset(self._now)

    # --- lifecycle ---

    def start(self) -> None:
        """Schedule the initial scan."""
        self._arm(INITIAL_SCAN_MS, "initial")

    def stop(self) -> None:
        """Disarm the timer. A scan that is already running finishes normally."""
        self._disarm()

    async def join(self) -> None:
        """Wait for the scan in flight, if any, to finish."""
        if self._task is not None:
            await self._task

    # --- events ---

    def trigger(self, reason: str, timeout_ms: float | None = None) -> str:
        """Request a scan within ``timeout_ms`` milliseconds.

        Returns what was done: ``"coalesced"``, ``"armed"``, ``"delayed"`` or
        ``"launched"``.
        """
        now = self.clock.now_ms()
        candidate = now + (timeout_ms or 0)

        if self._timer is not None and self._deadline is not None and self._deadline <= candidate:
            debug(logger, 1, "trigger(%s): next scan is sooner, ignoring trigger", reason)
            return "coalesced"

        if candidate > now:
            debug(logger, 1, "trigger(%s): scheduling scan for %dms in the future", reason, candidate - now)
            self._arm(candidate - now, reason)
            return "armed"

        if self._running:
            debug(logger, 1, "trigger(%s): scan time arrived while scan still running, postponing for 5s", reason)
            self._arm(BUSY_BACKOFF_MS, "delayed")
            return "delayed"

        debug(logger, 1, "trigger(%s): scanning now and queuing next scan for 60s from now", reason)
        self._arm(PERIODIC_SCAN_MS, "periodic")
        self._now = self._on_deck
        self._on_deck = {}
        self._running = True
        self.scans_started += 1
        self._task = asyncio.ensure_future(self._run_scan(reason, frozenset(self._now)))
        return "launched"

    def scan_completed(self, result: ScanResult | None) -> None:
        """Mark the running scan as finished. The armed timer is left alone."""
        self._running = False
        if result is not None:
            self.last_result = result

    def enqueue_folder(self, folder: Folder) -> bool:
        """Put a folder on deck for the next scan. Returns False if it already was."""
        if folder.ref in self._on_deck:
            debug(logger, 1, "Folder %s already in queue, not queuing again", folder_path(None, folder))
            return False
        debug(logger, 1, "Adding folder %s to queue", folder_path(None, folder))
        self._on_deck[folder.ref] = folder
        return True

    async def on_new_mail(self, folder: Folder, page: Page) -> None:
        """Notification handler: check the delivered messages, then rescan the folder."""
        try:
            await self.scanner.check_new_messages(folder, page)
        except HostApiError as e:
            logger.error("Could not check new mail in %s: %s", folder_path(None, folder), e)
        finally:
            # The next scan still covers the folder whatever happened above.
            self.enqueue_folder(folder)
            self.trigger("NewMailReceived")

    def on_online(self) -> None:
        self.trigger("online", ONLINE_SETTLE_MS)

    # --- internals ---

    def _arm(self, delay_ms: float, reason: str) -> None:
        self._disarm()
        self._deadline = self.clock.now_ms() + delay_ms
        self._timer = self.clock.schedule(delay_ms, lambda: self._fire(reason))

    def _disarm(self) -> None:
        if self._timer is not None:
            self.clock.cancel(self._timer)
        self._timer = None
        self._deadline = None

    def _fire(self, reason: str) -> None:
        self._timer = None
        self._deadline = None
        self.trigger(reason)

    async def _run_scan(self, reason: str, now_folders: frozenset[FolderRef]) -> None:
        result: ScanResult | None = None
        try:
            result = await self.scanner.scan_once(reason, now_folders, self.prefs.get(SCAN_PREF))
        except Exception:
            logger.exception("Scan error")
        finally:
            self.scan_completed(result)
