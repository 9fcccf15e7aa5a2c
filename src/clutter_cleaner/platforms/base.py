"""Abstract asset source consumed by the duplicate-detection pipeline."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from clutter_cleaner.core.models import AccessLevel, Asset, FetchTier


class AssetSource(ABC):
    """
    A photo library the pipeline can list, read and delete from.

    ``fetch_content`` is called concurrently from worker threads and must be
    thread-safe. ``delete_assets`` must be all-or-nothing: either every
    requested asset is removed or none is, and failures are reported by
    raising ``DeletionError``. The pipeline does not attempt to recover from
    a partial deletion.
    """

    name = "source"

    @abstractmethod
    def request_access(self) -> AccessLevel:
        """Ask for (or check) access to the library."""

    @abstractmethod
    def list_assets(self) -> List[Asset]:
        """Return every image asset, newest creation date first."""

    @abstractmethod
    def fetch_content(
        self, asset: Asset, tier: FetchTier, allow_network: bool
    ) -> Optional[bytes]:
        """
        Fetch the bytes of one asset at the requested tier.

        Returns None when the source has no data for the asset. May raise
        ``FetchError`` (or any other exception) on failure.
        """

    @abstractmethod
    def delete_assets(self, asset_ids: Sequence[str]) -> None:
        """Delete all of ``asset_ids`` atomically or raise ``DeletionError``."""
