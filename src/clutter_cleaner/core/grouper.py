"""Groups fetched assets by content digest."""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from clutter_cleaner.core.hasher import Hasher
from clutter_cleaner.core.models import (
    Asset,
    DuplicateGroup,
    FetchOutcome,
    ScanResult,
    created_sort_key,
)

logger = logging.getLogger(__name__)


class DuplicateGrouper:
    """
    Accumulates digest -> assets buckets from a stream of fetch outcomes.

    Not thread-safe: a single consumer feeds it, which keeps every write to
    the bucket map on one thread.
    """

    def __init__(self, hasher: Optional[Hasher] = None):
        self.hasher = hasher or Hasher()
        self._buckets: Dict[str, List[Asset]] = defaultdict(list)
        self._seen: Set[str] = set()
        self.skipped = 0

    def reset(self) -> None:
        self._buckets = defaultdict(list)
        self._seen = set()
        self.skipped = 0

    def add(self, outcome: FetchOutcome) -> Optional[str]:
        """
        Hash one outcome and file its asset under the digest.

        Failed fetches are counted and dropped, never hashed.

        Returns:
            The digest, or None when the outcome was skipped
        """
        asset = outcome.asset
        if not outcome.ok:
            self.skipped += 1
            logger.debug(f"Excluding {asset.id} from grouping ({outcome.error})")
            return None

        if asset.id in self._seen:
            logger.debug(f"Ignoring repeated outcome for {asset.id}")
            return None

        digest = self.hasher.digest(outcome.data)
        self._seen.add(asset.id)
        self._buckets[digest].append(asset)
        return digest

    def build(self, scanned: int, cancelled: bool = False) -> ScanResult:
        """
        Turn the buckets into a ScanResult.

        Only buckets with two or more members become groups. Groups are
        ordered newest first by their newest member.

        Args:
            scanned: Number of fetches issued during the scan
            cancelled: Whether the scan stopped before every asset was fetched
        """
        groups = [
            DuplicateGroup(digest=digest, assets=tuple(assets))
            for digest, assets in self._buckets.items()
            if len(assets) > 1
        ]
        groups.sort(key=lambda g: created_sort_key(g.newest), reverse=True)

        total_duplicates = sum(len(g) - 1 for g in groups)
        logger.info(
            f"Found {len(groups)} duplicate groups with {total_duplicates} duplicate files"
        )

        return ScanResult(
            groups=tuple(groups),
            scanned=scanned,
            skipped=self.skipped,
            cancelled=cancelled,
        )

    def group(self, outcomes: Iterable[FetchOutcome]) -> ScanResult:
        """Consume a whole outcome stream and build the result."""
        self.reset()
        scanned = 0
        for outcome in outcomes:
            scanned += 1
            self.add(outcome)
        return self.build(scanned)
