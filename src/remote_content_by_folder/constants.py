"""Constants for Remote Content By Folder."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".remote-content-by-folder"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
PREFS_PATH = CONFIG_DIR / "prefs.json"

# --- Gmail API ---
SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]
PAGE_SIZE = 500  # messages per list page
HISTORY_PAGE_SIZE = 500  # history records per history.list page
METADATA_HEADERS = ["From", "Subject", "Message-ID"]
ALLOW_LABEL = "Remote Content/Allow"
BLOCK_LABEL = "Remote Content/Block"
HISTORY_POLL_SECONDS = 30.0

# --- Preferences ---
DEBUG_PREF = "debug"
DEBUG_LEVEL_PREF = "debug_level"
ALLOW_PREF = "allow_regexp"
BLOCK_PREF = "block_regexp"
SCAN_PREF = "scan_regexp"
BLOCK_FIRST_PREF = "block_first"

PREF_DEFAULTS = {
    DEBUG_PREF: False,
    DEBUG_LEVEL_PREF: 1,
    ALLOW_PREF: "",
    BLOCK_PREF: "",
    SCAN_PREF: "",
    BLOCK_FIRST_PREF: False,
}

REGEXP_PREFS = (ALLOW_PREF, BLOCK_PREF, SCAN_PREF)

# --- Scheduling (milliseconds) ---
INITIAL_SCAN_MS = 1
PERIODIC_SCAN_MS = 60_000
BUSY_BACKOFF_MS = 5_000
ONLINE_SETTLE_MS = 5_000

# --- Diagnostics ---
DESCRIBED_MESSAGES_LIMIT = 10  # messages described in full per notification
ANOMALY_HISTORY_LIMIT = 100
