"""OAuth credentials for the Gmail account whose labels act as folders."""

from __future__ import annotations

import logging

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import Resource, build

from remote_content_by_folder.constants import CONFIG_DIR, CREDENTIALS_PATH, SCOPES, TOKEN_PATH

logger = logging.getLogger(__name__)


def _cached_credentials() -> Credentials | None:
    if not TOKEN_PATH.exists():
        return None
    creds = Credentials.from_authorized_user_file(str(TOKEN_PATH), SCOPES)
    if creds.valid:
        return creds
    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as e:
            # Revoked or expired refresh token, fall back to a new consent flow.
            logger.warning("Could not refresh cached token: %s", e)
            return None
        return creds
    return None


def _consent_flow() -> Credentials:
    if not CREDENTIALS_PATH.exists():
        raise FileNotFoundError(
            f"Credentials file not found at {CREDENTIALS_PATH}.\n"
            "Create an OAuth client for a desktop app in the Google Cloud Console, "
            "enable the Gmail API and save the client secrets as:\n"
            f"  {CREDENTIALS_PATH}"
        )
    flow = InstalledAppFlow.from_client_secrets_file(str(CREDENTIALS_PATH), SCOPES)
    return flow.run_local_server(port=0)


def get_gmail_service() -> Resource:
    """Return a Gmail API service allowed to read messages and change their labels.

    The token cached at TOKEN_PATH is reused and refreshed when possible;
    otherwise the browser consent flow runs against CREDENTIALS_PATH.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    creds = _cached_credentials()
    if creds is None:
        creds = _consent_flow()
        logger.info("Stored new Gmail token at %s", TOKEN_PATH)
    TOKEN_PATH.write_text(creds.to_json())

    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def check_auth() -> bool:
    """Report whether the Gmail account can be reached with the stored credentials."""
    from remote_content_by_folder.display import console

    try:
        service = get_gmail_service()
        profile = service.users().getProfile(userId="me").execute()
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        return False
    except Exception as exc:
        console.print(f"[red]Authentication failed: {exc}[/red]")
        return False

    console.print(
        f"[green]Authenticated as {profile['emailAddress']}[/green] "
        f"({profile.get('messagesTotal', 0)} messages)"
    )
    return True
