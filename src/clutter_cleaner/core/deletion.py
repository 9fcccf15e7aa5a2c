"""Deletion of selected duplicate groups."""

import logging
from typing import Callable, List, Optional, Sequence, Tuple, Union

from clutter_cleaner.core.errors import DELETE_FAILED_MESSAGE, DeletionError
from clutter_cleaner.core.models import (
    Asset,
    DeletionOutcome,
    DeletionPolicy,
    DuplicateGroup,
    created_sort_key,
)
from clutter_cleaner.platforms.base import AssetSource

logger = logging.getLogger(__name__)


class DeletionCoordinator:
    """
    Deletes a user-selected set of assets and triggers a fresh scan.

    With the default ``DELETE_ALL`` policy every selected asset is removed,
    including the last copy of the image. ``KEEP_NEWEST`` and ``KEEP_OLDEST``
    spare one member instead. Failures are reported, never retried.
    """

    def __init__(
        self,
        source: AssetSource,
        rescan: Optional[Callable[[], object]] = None,
        policy: DeletionPolicy = DeletionPolicy.DELETE_ALL,
    ):
        """
        Initialize the coordinator.

        Args:
            source: Asset source performing the removal
            rescan: Called after a successful deletion; its return value is
                reported as ``DeletionOutcome.rescan`` (None if it raised)
            policy: Survivor policy applied to each selection
        """
        self.source = source
        self.rescan = rescan
        self.policy = policy

    def select(self, assets: Sequence[Asset]) -> Tuple[List[Asset], List[Asset]]:
        """
        Split a selection into (to_delete, to_keep) according to the policy.
        """
        assets = list(assets)
        if self.policy is DeletionPolicy.DELETE_ALL or len(assets) < 2:
            return assets, []

        if self.policy is DeletionPolicy.KEEP_NEWEST:
            survivor = max(assets, key=created_sort_key)
        else:
            dated = [a for a in assets if a.created is not None] or assets
            survivor = min(dated, key=created_sort_key)

        return [a for a in assets if a is not survivor], [survivor]

    def delete(
        self, assets: Union[DuplicateGroup, Sequence[Asset]]
    ) -> DeletionOutcome:
        """
        Delete the selected assets through the source.

        Args:
            assets: A duplicate group or any sequence of assets

        Returns:
            DeletionOutcome; on failure ``message`` carries the source's error
        """
        to_delete, to_keep = self.select(list(assets))
        kept_ids = tuple(a.id for a in to_keep)

        if not to_delete:
            logger.warning("Deletion requested with nothing to delete")
            return DeletionOutcome(
                success=False, kept=kept_ids, message="No assets selected for deletion"
            )

        asset_ids = [a.id for a in to_delete]
        logger.info(
            f"Deleting {len(asset_ids)} assets (policy: {self.policy.value}, "
            f"keeping {len(kept_ids)})"
        )

        try:
            self.source.delete_assets(asset_ids)
        except DeletionError as e:
            logger.error(f"Deletion failed: {e.message}")
            return DeletionOutcome(success=False, kept=kept_ids, message=e.message)
        except Exception as e:
            message = str(e) or DELETE_FAILED_MESSAGE
            logger.error(f"Deletion failed: {message}")
            return DeletionOutcome(success=False, kept=kept_ids, message=message)

        logger.info(f"Deleted {len(asset_ids)} assets")

        rescan = None
        if self.rescan:
            try:
                rescan = self.rescan()
            except Exception as e:
                # The assets are gone either way; report the deletion as done
                logger.error(f"Could not start re-scan after deletion: {e}")

        return DeletionOutcome(
            success=True,
            deleted=tuple(asset_ids),
            kept=kept_ids,
            rescan=rescan,
        )
