"""
Google Drive Mirror Implementation

DESIGN DECISION: Google Drive is the remote mirror because:
1. Every participant already has a Google account
2. The ledger is one small JSON file - no database needed
3. Users can inspect or back up the file themselves

TRADEOFFS:
- Last write wins; there is no conflict detection
- One file per identity inside a dedicated folder

The mirror is one-way: local state is authoritative and pushed up in full.
All connection state (credential, HTTP session, cached folder id) lives on
the DriveSession returned by authenticate(), never in module globals.
"""

import asyncio
import json
from typing import Optional, Sequence

import requests
import structlog
from google.auth.exceptions import GoogleAuthError, RefreshError, TransportError
from google.auth.transport.requests import AuthorizedSession, Request
from google.oauth2.service_account import Credentials
from pydantic import ValidationError as SchemaError

from sharedbill.config import GoogleDriveSettings, get_settings
from sharedbill.models.ledger import MonthlyRecord
from sharedbill.services.storage.interface import (
    AuthError,
    DriveSession,
    RemoteLedgerFile,
    RemoteLedgerStorage,
    SyncError,
)

logger = structlog.get_logger(__name__)

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"
SCOPES = ["https://www.googleapis.com/auth/drive.file"]

MULTIPART_BOUNDARY = "-------314159265358979323846"


def _quote(value: str) -> str:
    """Escape a literal for a Drive `q` search expression."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_multipart_body(metadata: dict, records: Sequence[MonthlyRecord]) -> str:
    """
    multipart/related body: JSON metadata part, then the ledger itself.
    """
    delimiter = f"\r\n--{MULTIPART_BOUNDARY}\r\n"
    close_delim = f"\r\n--{MULTIPART_BOUNDARY}--"
    content = json.dumps([record.to_wire() for record in records], ensure_ascii=False)
    return (
        delimiter + "Content-Type: application/json\r\n\r\n" + json.dumps(metadata)
        + delimiter + f"Content-Type: {JSON_MIME_TYPE}\r\n\r\n" + content
        + close_delim
    )


def parse_remote_records(payload) -> list[MonthlyRecord]:
    """Validate the content of a ledger file fetched from Drive."""
    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    if not isinstance(payload, list):
        raise SyncError("Remote ledger file is not a JSON array")
    try:
        return [MonthlyRecord.model_validate(item) for item in payload]
    except SchemaError as e:
        raise SyncError(f"Remote ledger file holds malformed records: {e}")


class GoogleDriveLedgerStorage(RemoteLedgerStorage):
    """
    Drive v3 implementation of the Sync Bridge.

    Authenticates with a service account key. Blocking HTTP calls run in
    a worker thread so the event loop stays free.
    """

    def __init__(self, settings: Optional[GoogleDriveSettings] = None):
        self._settings = settings or get_settings().google_drive

    def file_name_for(self, session: DriveSession) -> str:
        return f"{session.identity}{self._settings.file_suffix}"

    # -- authentication ---------------------------------------------------

    def _load_credentials(self) -> Credentials:
        path = self._settings.credentials_path
        try:
            credentials = Credentials.from_service_account_file(path, scopes=SCOPES)
        except FileNotFoundError:
            raise AuthError(f"Google credentials file not found: {path}")
        except (ValueError, KeyError) as e:
            raise AuthError(f"Google credentials file is not a service account key: {e}")

        try:
            credentials.refresh(Request())
        except RefreshError as e:
            raise AuthError(
                f"Access denied by Google: {e}",
                guidance=(
                    "Make sure the service account is enabled and the Drive API "
                    "is turned on for its project."
                ),
            )
        except TransportError as e:
            raise AuthError(
                f"Could not reach Google to authenticate: {e}",
                guidance="Check your internet connection and try again.",
            )
        return credentials

    async def authenticate(self) -> DriveSession:
        """Load the key, obtain a token and open an authorized HTTP session."""
        credentials = await asyncio.to_thread(self._load_credentials)

        email = getattr(credentials, "service_account_email", "") or ""
        identity = email.split("@")[0]
        if not identity:
            raise AuthError("Could not determine the account identity from the credential")

        logger.info("drive_authenticated", identity=identity)
        return DriveSession(
            credentials=credentials,
            identity=identity,
            http=AuthorizedSession(credentials),
        )

    # -- transport --------------------------------------------------------

    def _request(
        self,
        session: DriveSession,
        method: str,
        url: str,
        **kwargs,
    ) -> requests.Response:
        if session.closed or session.http is None:
            raise SyncError("Drive session is closed. Please reconnect.")
        try:
            response = session.http.request(method, url, **kwargs)
        except (requests.RequestException, GoogleAuthError) as e:
            raise SyncError(f"Drive {method} request failed: {e}")
        if not response.ok:
            raise SyncError(
                f"Drive {method} request failed: {response.status_code} {response.reason}"
            )
        return response

    def _get_or_create_folder_id(self, session: DriveSession) -> str:
        """Find the dedicated folder, creating it on first use; cached per session."""
        if session.folder_id:
            return session.folder_id

        name = self._settings.folder_name
        response = self._request(
            session,
            "GET",
            DRIVE_FILES_URL,
            params={
                "q": (
                    f"name = '{_quote(name)}' and mimeType = '{FOLDER_MIME_TYPE}' "
                    "and trashed = false"
                ),
                "fields": "files(id, name)",
                "spaces": "drive",
            },
        )
        files = response.json().get("files") or []
        if files:
            session.folder_id = files[0]["id"]
            return session.folder_id

        response = self._request(
            session,
            "POST",
            DRIVE_FILES_URL,
            params={"fields": "id"},
            json={"name": name, "mimeType": FOLDER_MIME_TYPE},
        )
        folder_id = response.json().get("id")
        if not folder_id:
            raise SyncError(f"Failed to create Drive folder {name!r}")
        logger.info("drive_folder_created", folder=name)
        session.folder_id = folder_id
        return folder_id

    # -- Sync Bridge operations ------------------------------------------

    def _find_existing(self, session: DriveSession) -> Optional[RemoteLedgerFile]:
        folder_id = self._get_or_create_folder_id(session)
        file_name = self.file_name_for(session)

        response = self._request(
            session,
            "GET",
            DRIVE_FILES_URL,
            params={
                "q": (
                    f"'{_quote(folder_id)}' in parents and name = '{_quote(file_name)}' "
                    "and trashed = false"
                ),
                "fields": "files(id, name)",
                "spaces": "drive",
            },
        )
        files = response.json().get("files") or []
        if not files:
            return None

        file_id = files[0]["id"]
        content = self._request(
            session,
            "GET",
            f"{DRIVE_FILES_URL}/{file_id}",
            params={"alt": "media"},
        )
        try:
            records = parse_remote_records(content.text)
        except json.JSONDecodeError as e:
            raise SyncError(f"Remote ledger file is not valid JSON: {e}")
        return RemoteLedgerFile(file_id=file_id, records=records)

    async def find_existing_ledger_file(
        self,
        session: DriveSession,
    ) -> Optional[RemoteLedgerFile]:
        """Look up this identity's ledger file inside the app folder."""
        return await asyncio.to_thread(self._find_existing, session)

    def _create(self, session: DriveSession, records: Sequence[MonthlyRecord]) -> str:
        folder_id = self._get_or_create_folder_id(session)
        metadata = {
            "name": self.file_name_for(session),
            "mimeType": JSON_MIME_TYPE,
            "parents": [folder_id],
        }
        response = self._request(
            session,
            "POST",
            DRIVE_UPLOAD_URL,
            params={"uploadType": "multipart", "fields": "id"},
            data=build_multipart_body(metadata, records).encode("utf-8"),
            headers={"Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}"},
        )
        file_id = response.json().get("id")
        if not file_id:
            raise SyncError("Failed to create the ledger file on Google Drive")
        logger.info("drive_file_created", file_id=file_id, records=len(records))
        return file_id

    async def create_ledger_file(
        self,
        session: DriveSession,
        records: Sequence[MonthlyRecord],
    ) -> str:
        """Create the ledger file for this identity."""
        return await asyncio.to_thread(self._create, session, list(records))

    def _update(
        self,
        session: DriveSession,
        file_id: str,
        records: Sequence[MonthlyRecord],
    ) -> None:
        self._request(
            session,
            "PATCH",
            f"{DRIVE_UPLOAD_URL}/{file_id}",
            params={"uploadType": "multipart"},
            data=build_multipart_body({"mimeType": JSON_MIME_TYPE}, records).encode("utf-8"),
            headers={"Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}"},
        )

    async def update_ledger_file(
        self,
        session: DriveSession,
        file_id: str,
        records: Sequence[MonthlyRecord],
    ) -> None:
        """Overwrite the remote ledger with the full record set."""
        await asyncio.to_thread(self._update, session, file_id, list(records))
