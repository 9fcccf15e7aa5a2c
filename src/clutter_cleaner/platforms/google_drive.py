"""
Google Drive photo library.

Provides OAuth authentication, paged image listing, content download at the
original or thumbnail tier, and transactional trashing via Drive API v3.
"""

import io
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload

from clutter_cleaner.core.errors import DeletionError, FetchError
from clutter_cleaner.core.models import AccessLevel, Asset, FetchTier
from clutter_cleaner.platforms.base import AssetSource

logger = logging.getLogger(__name__)

# Full drive scope: deleting duplicates means trashing files
SCOPES = ["https://www.googleapis.com/auth/drive"]

# Image MIME types supported by Google Drive
IMAGE_MIME_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    "image/heic",
    "image/heif",
    "image/tiff",
]

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def parse_drive_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp such as '2024-05-01T10:00:00.000Z'."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable Drive timestamp: {value}")
        return None


class GoogleDriveLibrary(AssetSource):
    """Asset source over the image files of a Google Drive account."""

    name = "google_drive"

    def __init__(
        self,
        credentials_file: Optional[Path] = None,
        token_file: Optional[Path] = None,
        page_size: int = 100,
        timeout: float = 30.0,
    ):
        """
        Initialize Google Drive library.

        Args:
            credentials_file: Path to OAuth client secrets JSON file
            token_file: Path to store/load OAuth tokens
            page_size: Number of files per listing page (max 1000)
            timeout: Timeout in seconds for thumbnail downloads
        """
        self.credentials_file = credentials_file or Path.home() / ".photo-clutter-cleaner" / "credentials.json"
        self.token_file = token_file or Path.home() / ".photo-clutter-cleaner" / "token.json"
        self.page_size = page_size
        self.timeout = timeout

        self.credentials: Optional[Credentials] = None
        self.service = None
        self._local = threading.local()

    def request_access(self) -> AccessLevel:
        """
        Authenticate and translate the result into an access level.

        Returns:
            AUTHORIZED on success, NOT_DETERMINED when no client secrets are
            available to ask with, DENIED when the OAuth flow fails
        """
        if self.authenticate():
            return AccessLevel.AUTHORIZED
        if self.credentials is None and not self.credentials_file.exists():
            return AccessLevel.NOT_DETERMINED
        return AccessLevel.DENIED

    def authenticate(self) -> bool:
        """
        Authenticate with Google Drive using OAuth 2.0.

        Returns:
            True if authentication successful, False otherwise
        """
        # Load existing token if available
        if self.token_file.exists():
            try:
                self.credentials = Credentials.from_authorized_user_file(
                    str(self.token_file), SCOPES
                )
                logger.info("Loaded existing OAuth token")
            except Exception as e:
                logger.warning(f"Failed to load existing token: {e}")
                self.credentials = None

        # Refresh token if expired
        if self.credentials and self.credentials.expired and self.credentials.refresh_token:
            try:
                self.credentials.refresh(Request())
                logger.info("Refreshed OAuth token")
            except Exception as e:
                logger.warning(f"Failed to refresh token: {e}")
                self.credentials = None

        # Start new OAuth flow if no valid credentials
        if not self.credentials or not self.credentials.valid:
            if not self.credentials_file.exists():
                logger.error(
                    f"Credentials file not found: {self.credentials_file}\n"
                    "Please download OAuth 2.0 credentials from Google Cloud Console:\n"
                    "1. Go to https://console.cloud.google.com/apis/credentials\n"
                    "2. Create OAuth 2.0 Client ID (Desktop application)\n"
                    f"3. Save as {self.credentials_file}"
                )
                return False

            try:
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self.credentials_file), SCOPES
                )
                self.credentials = flow.run_local_server(port=0)
                logger.info("Completed OAuth flow")
            except Exception as e:
                logger.error(f"OAuth flow failed: {e}")
                return False

        # Save credentials for next run
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.token_file, "w") as f:
                f.write(self.credentials.to_json())
            logger.info(f"Saved OAuth token to {self.token_file}")
        except Exception as e:
            logger.warning(f"Failed to save token: {e}")

        try:
            self.service = build("drive", "v3", credentials=self.credentials)
            logger.info("Google Drive service initialized")
            return True
        except Exception as e:
            logger.error(f"Failed to build Drive service: {e}")
            return False

    def list_assets(self) -> List[Asset]:
        """
        List all image files in Google Drive, newest first.

        Returns:
            Assets keyed by Drive file id
        """
        return [self._to_asset(f) for f in self.list_image_files()]

    def list_image_files(self, max_results: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        List raw metadata for every non-trashed image file.

        Args:
            max_results: Maximum number of files to return (None for all)

        Returns:
            List of file metadata dictionaries ordered by createdTime desc
        """
        if not self.service:
            raise RuntimeError("Not authenticated. Call authenticate() first.")

        mime_queries = [f"mimeType='{mime}'" for mime in IMAGE_MIME_TYPES]
        query = f"({' or '.join(mime_queries)}) and trashed=false"

        # Partial fields for efficiency
        fields = "nextPageToken, files(id, name, mimeType, size, createdTime, thumbnailLink)"

        files: List[Dict[str, Any]] = []
        page_token = None

        logger.info("Listing image files from Google Drive")

        try:
            while True:
                results = self._execute_with_retry(
                    self.service.files().list,
                    q=query,
                    spaces="drive",
                    fields=fields,
                    orderBy="createdTime desc",
                    pageSize=min(self.page_size, 1000),
                    pageToken=page_token,
                )

                page_files = results.get("files", [])
                files.extend(page_files)

                logger.debug(f"Retrieved {len(page_files)} files (total: {len(files)})")

                if max_results and len(files) >= max_results:
                    files = files[:max_results]
                    break

                page_token = results.get("nextPageToken")
                if not page_token:
                    break

        except HttpError as e:
            logger.error(f"Drive API error: {e}")
            raise

        logger.info(f"Found {len(files)} image files in Google Drive")
        return files

    def fetch_content(
        self, asset: Asset, tier: FetchTier, allow_network: bool
    ) -> Optional[bytes]:
        """
        Download an asset's bytes.

        Every Drive read is a network read, so ``allow_network=False`` fails.

        Returns:
            File bytes for the original tier, thumbnail bytes for the fast
            tier, or None when Drive has no thumbnail for the file
        """
        if not allow_network:
            raise FetchError(asset.id, "network access is not allowed")

        service = self._thread_service()

        try:
            if tier is FetchTier.ORIGINAL:
                return self._download_original(service, asset.id)
            return self._download_thumbnail(service, asset.id)
        except HttpError as e:
            raise FetchError(asset.id, f"Drive API error {e.resp.status}") from e
        except requests.RequestException as e:
            raise FetchError(asset.id, str(e)) from e

    def delete_assets(self, asset_ids: Sequence[str]) -> None:
        """
        Move files to the Drive trash all-or-nothing.

        If trashing any file fails, for any reason, files already trashed by
        this call are restored before the error is raised. Trash requests are
        sent once and never retried.

        Raises:
            DeletionError: If any file could not be trashed
        """
        if not self.service:
            raise RuntimeError("Not authenticated. Call authenticate() first.")

        trashed: List[str] = []
        for file_id in dict.fromkeys(asset_ids):
            try:
                self._set_trashed(file_id, True)
            except Exception as e:
                logger.error(f"Failed to trash file {file_id}: {e}")
                not_restored = [
                    restored_id
                    for restored_id in reversed(trashed)
                    if not self.restore_from_trash(restored_id)
                ]

                message = f"Failed to delete photos: {self._describe_error(e)} on {file_id}"
                if not_restored:
                    message += f"; still in trash: {', '.join(not_restored)}"
                raise DeletionError(message) from e

            trashed.append(file_id)
            logger.info(f"Moved file {file_id} to trash")

    def restore_from_trash(self, file_id: str) -> bool:
        """
        Restore a file from trash.

        Args:
            file_id: Google Drive file ID

        Returns:
            True if successful, False otherwise
        """
        if not self.service:
            raise RuntimeError("Not authenticated. Call authenticate() first.")

        try:
            self._set_trashed(file_id, False)
            logger.info(f"Restored file {file_id} from trash")
            return True

        except Exception as e:
            logger.error(f"Failed to restore file {file_id}: {e}")
            return False

    def _set_trashed(self, file_id: str, trashed: bool) -> None:
        files = self.service.files()
        if trashed:
            # Destructive: one attempt, a failure rolls the whole batch back
            files.update(fileId=file_id, body={"trashed": True}).execute()
            return

        self._execute_with_retry(
            files.update,
            fileId=file_id,
            body={"trashed": False},
        )

    @staticmethod
    def _describe_error(error: Exception) -> str:
        if isinstance(error, HttpError):
            return f"Drive API error {error.resp.status}"
        return str(error) or error.__class__.__name__

    def _thread_service(self):
        """Drive service for the calling thread (httplib2 is not thread-safe)."""
        if not self.service:
            raise RuntimeError("Not authenticated. Call authenticate() first.")

        service = getattr(self._local, "service", None)
        if service is None:
            service = build(
                "drive", "v3", credentials=self.credentials, cache_discovery=False
            )
            self._local.service = service
        return service

    def _download_original(self, service, file_id: str) -> bytes:
        request = service.files().get_media(fileId=file_id)
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request)

        done = False
        while not done:
            _, done = downloader.next_chunk()

        return buffer.getvalue()

    def _download_thumbnail(self, service, file_id: str) -> Optional[bytes]:
        file_metadata = self._execute_with_retry(
            service.files().get,
            fileId=file_id,
            fields="thumbnailLink",
        )

        thumbnail_link = file_metadata.get("thumbnailLink")
        if not thumbnail_link:
            logger.debug(f"No thumbnail available for file {file_id}")
            return None

        response = requests.get(
            thumbnail_link,
            headers={"Authorization": f"Bearer {self.credentials.token}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.content

    @staticmethod
    def _to_asset(file: Dict[str, Any]) -> Asset:
        size = file.get("size")
        return Asset(
            id=file["id"],
            created=parse_drive_time(file.get("createdTime")),
            name=file.get("name", ""),
            size=int(size) if size is not None else None,
        )

    def _execute_with_retry(
        self,
        api_call,
        max_retries: int = 5,
        **kwargs
    ) -> Any:
        """
        Execute API call with exponential backoff retry.

        Args:
            api_call: API method to call
            max_retries: Maximum number of retries
            **kwargs: Arguments to pass to API call

        Returns:
            API response

        Raises:
            HttpError: If all retries fail
        """
        for attempt in range(max_retries):
            try:
                return api_call(**kwargs).execute()

            except HttpError as e:
                if e.resp.status in RETRYABLE_STATUSES and attempt < max_retries - 1:
                    # Exponential backoff: 2^attempt seconds
                    wait_time = 2 ** attempt
                    logger.warning(
                        f"API error {e.resp.status}, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                    continue

                # Non-retryable error or max retries exceeded
                raise

        raise RuntimeError(f"Max retries ({max_retries}) exceeded")
