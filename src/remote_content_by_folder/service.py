"""Wires the Gmail host adapters to the scanner and scheduler."""

from __future__ import annotations

import logging
from typing import Collection

from .config import Preferences
from .display import display_anomaly
from .gmail_client import GmailApi, GmailMailStore, GmailNotificationFeed, GmailPolicyStore
from .models import ScanResult
from .scanner import FolderScanner
from .scheduler import ScanScheduler

logger = logging.getLogger(__name__)


async def run_service(service, prefs: Preferences, poll_seconds: float) -> None:
    """Watch the mailbox until cancelled."""
    api = GmailApi(service)
    mail_store = GmailMailStore(api)
    scanner = FolderScanner(mail_store, GmailPolicyStore(api), prefs, on_anomaly=display_anomaly)
    scheduler = ScanScheduler(scanner, prefs)

    feed = GmailNotificationFeed(api, mail_store, poll_seconds=poll_seconds)
    feed.subscribe(scheduler.on_new_mail)
    feed.subscribe_online(scheduler.on_online)

    logger.info("Watching for new mail (history poll every %ss)", poll_seconds)
    scheduler.start()
    try:
        await feed.run()
    finally:
        scheduler.stop()
        await scheduler.join()
        api.close()


async def run_single_scan(
    service,
    prefs: Preferences,
    filter_regexp: str | None = None,
    folder_paths: Collection[str] = (),
) -> ScanResult:
    """Run one scan pass, optionally forcing the folders with the given paths."""
    api = GmailApi(service)
    try:
        mail_store = GmailMailStore(api)
        scanner = FolderScanner(mail_store, GmailPolicyStore(api), prefs, on_anomaly=display_anomaly)

        now_folders = set()
        if folder_paths:
            wanted = set(folder_paths)
            for account in await mail_store.list_accounts():
                now_folders.update(f.ref for f in account.folders if f.path in wanted)

        return await scanner.scan_once("manual", now_folders, filter_regexp)
    finally:
        api.close()
