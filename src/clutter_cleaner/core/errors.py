"""Exception taxonomy for photo-clutter-cleaner."""

from typing import Optional

DENIED_MESSAGE = (
    "Photo library access is required to find duplicates. "
    "Please grant access and try again."
)
DELETE_FAILED_MESSAGE = "Failed to delete photos"


class ClutterCleanerError(Exception):
    """Base class for all errors raised by this package."""


class AuthorizationDeniedError(ClutterCleanerError):
    """The asset source refused access to the library."""

    def __init__(self, message: str = DENIED_MESSAGE):
        super().__init__(message)
        self.message = message


class FetchError(ClutterCleanerError):
    """Content for a single asset could not be fetched."""

    def __init__(self, asset_id: str, reason: str):
        super().__init__(f"Failed to fetch {asset_id}: {reason}")
        self.asset_id = asset_id
        self.reason = reason


class DeletionError(ClutterCleanerError):
    """The asset source could not delete the requested assets."""

    def __init__(self, message: Optional[str] = None):
        self.message = message or DELETE_FAILED_MESSAGE
        super().__init__(self.message)
