"""Data models shared by the duplicate-detection pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple


class AccessLevel(Enum):
    """Access level an asset source grants to the library."""

    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    AUTHORIZED = "authorized"
    LIMITED = "limited"

    @property
    def is_authorized(self) -> bool:
        """Full and limited access both allow scanning."""
        return self in (AccessLevel.AUTHORIZED, AccessLevel.LIMITED)


class FetchTier(Enum):
    """Representation of an asset requested from the source."""

    ORIGINAL = "original"
    FAST = "fast"

    @property
    def description(self) -> str:
        mapping = {
            FetchTier.ORIGINAL: "Original stored bytes (exact, slower)",
            FetchTier.FAST: "Preview / thumbnail bytes (faster, may mis-group)",
        }
        return mapping[self]


class ScanState(Enum):
    """States of the processing state machine."""

    IDLE = "idle"
    AUTHORIZING = "authorizing"
    SCANNING = "scanning"
    CANCELLING = "cancelling"


class DeletionPolicy(Enum):
    """Which members of a selected group survive a deletion."""

    DELETE_ALL = "delete_all"
    KEEP_NEWEST = "keep_newest"
    KEEP_OLDEST = "keep_oldest"


@dataclass(frozen=True)
class Asset:
    """One photo in the library, identified by a stable opaque id."""

    id: str
    created: Optional[datetime] = None
    name: str = ""
    size: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "created": self.created.isoformat() if self.created else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        created = data.get("created")
        return cls(
            id=data["id"],
            created=datetime.fromisoformat(created) if created else None,
            name=data.get("name") or "",
            size=data.get("size"),
        )


@dataclass
class FetchOutcome:
    """Result of fetching one asset: bytes, or no data with an optional error."""

    asset: Asset
    data: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data is not None


def created_sort_key(asset: Asset) -> Tuple[int, float]:
    # Undated assets sort after dated ones when ordering newest first
    if asset.created is None:
        return (0, 0.0)
    return (1, asset.created.timestamp())


@dataclass(frozen=True)
class DuplicateGroup:
    """Two or more assets whose fetched content shares one digest."""

    digest: str
    assets: Tuple[Asset, ...]

    def __post_init__(self) -> None:
        if len(self.assets) < 2:
            raise ValueError(
                f"A duplicate group needs at least 2 assets, got {len(self.assets)}"
            )

    def __len__(self) -> int:
        return len(self.assets)

    def __iter__(self) -> Iterator[Asset]:
        return iter(self.assets)

    @property
    def asset_ids(self) -> Tuple[str, ...]:
        return tuple(asset.id for asset in self.assets)

    @property
    def newest(self) -> Asset:
        return max(self.assets, key=created_sort_key)

    @property
    def oldest(self) -> Asset:
        dated = [a for a in self.assets if a.created is not None]
        if not dated:
            return self.assets[0]
        return min(dated, key=created_sort_key)

    @property
    def total_size(self) -> int:
        return sum(asset.size or 0 for asset in self.assets)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "digest": self.digest,
            "assets": [asset.to_dict() for asset in self.assets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DuplicateGroup":
        return cls(
            digest=data["digest"],
            assets=tuple(Asset.from_dict(a) for a in data["assets"]),
        )


@dataclass(frozen=True)
class ScanResult:
    """Complete, immutable outcome of one scan."""

    groups: Tuple[DuplicateGroup, ...] = ()
    scanned: int = 0
    skipped: int = 0
    cancelled: bool = False
    completed_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def empty(cls) -> "ScanResult":
        return cls()

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[DuplicateGroup]:
        return iter(self.groups)

    @property
    def duplicate_count(self) -> int:
        """Number of assets that have at least one identical twin."""
        return sum(len(group) for group in self.groups)

    def find_group(self, asset_id: str) -> Optional[DuplicateGroup]:
        for group in self.groups:
            if asset_id in group.asset_ids:
                return group
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed_at": self.completed_at.isoformat(),
            "scanned": self.scanned,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "groups": [group.to_dict() for group in self.groups],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanResult":
        completed_at = data.get("completed_at")
        return cls(
            groups=tuple(DuplicateGroup.from_dict(g) for g in data.get("groups", [])),
            scanned=data.get("scanned", 0),
            skipped=data.get("skipped", 0),
            cancelled=data.get("cancelled", False),
            completed_at=(
                datetime.fromisoformat(completed_at) if completed_at else datetime.now()
            ),
        )


@dataclass(frozen=True)
class ScanProgress:
    """Snapshot of scan progress counters."""

    total: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.completed / self.total


@dataclass
class DeletionOutcome:
    """Reported outcome of a deletion request."""

    success: bool
    deleted: Tuple[str, ...] = ()
    kept: Tuple[str, ...] = ()
    message: Optional[str] = None
    rescan: Optional[Any] = None  # Future[ScanResult] of the triggered re-scan
