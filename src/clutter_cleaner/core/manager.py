"""
Library manager: composes the duplicate-detection pipeline.

Asset source -> fetch scheduler -> hasher -> duplicate grouper -> published
ScanResult -> deletion coordinator -> asset source, which triggers a new scan.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Sequence, Union

from clutter_cleaner.core.deletion import DeletionCoordinator
from clutter_cleaner.core.errors import DENIED_MESSAGE, AuthorizationDeniedError
from clutter_cleaner.core.grouper import DuplicateGrouper
from clutter_cleaner.core.hasher import Hasher
from clutter_cleaner.core.models import (
    AccessLevel,
    Asset,
    DeletionOutcome,
    DeletionPolicy,
    DuplicateGroup,
    FetchTier,
    ScanProgress,
    ScanResult,
    ScanState,
)
from clutter_cleaner.core.scheduler import FetchScheduler
from clutter_cleaner.core.state import ProcessingStateMachine
from clutter_cleaner.platforms.base import AssetSource
from clutter_cleaner.utils.config import Config

logger = logging.getLogger(__name__)


class LibraryManager:
    """
    Finds byte-identical photos in one asset source and deletes them on request.

    Construct one per library and pass it to whatever needs it. Scans run on
    a single processing thread; the published result is an immutable
    ScanResult swapped under a lock, so readers never see a partial result.
    """

    def __init__(
        self,
        source: AssetSource,
        config: Optional[Config] = None,
        hasher: Optional[Hasher] = None,
        limit: Optional[int] = None,
        tier: Optional[FetchTier] = None,
        allow_network: Optional[bool] = None,
        policy: Optional[DeletionPolicy] = None,
    ):
        """
        Initialize the manager.

        Explicit arguments win over ``config``; without either, the defaults
        are a limit of 5, the original tier, no network and delete-all.

        Args:
            source: Asset source to scan
            config: Optional configuration instance
            hasher: Digest implementation (default: SHA-256)
            limit: Maximum concurrent fetches
            tier: Representation to hash
            allow_network: Whether fetches may use the network
            policy: Survivor policy for deletions
        """
        if limit is None:
            limit = config.fetch_limit() if config else FetchScheduler.DEFAULT_LIMIT
        if tier is None:
            tier = config.fetch_tier() if config else FetchTier.ORIGINAL
        if allow_network is None:
            allow_network = bool(config.get("fetch.allow_network", False)) if config else False
        if policy is None:
            policy = config.deletion_policy() if config else DeletionPolicy.DELETE_ALL

        self.source = source
        self.config = config
        self.scheduler = FetchScheduler(
            source, limit=limit, tier=tier, allow_network=allow_network
        )
        self.grouper = DuplicateGrouper(hasher)
        self.state_machine = ProcessingStateMachine()
        self.deletion = DeletionCoordinator(
            source, rescan=self._rescan_after_deletion, policy=policy
        )

        self.access_level = AccessLevel.NOT_DETERMINED
        self.authorized = False
        self.error_message: Optional[str] = None

        self._result = ScanResult.empty()
        self._result_lock = threading.Lock()
        self._scan_lock = threading.Lock()
        self._current_scan: Optional[Future] = None
        self._pending_rescan: Optional[Future] = None
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="processing"
        )

        if tier is FetchTier.FAST:
            logger.warning(
                "Hashing fast-format previews: different originals with identical "
                "previews may be reported as duplicates"
            )

    def __enter__(self) -> "LibraryManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def duplicates(self) -> ScanResult:
        """Most recently published scan result."""
        with self._result_lock:
            return self._result

    @property
    def state(self) -> ScanState:
        return self.state_machine.state

    @property
    def progress(self) -> ScanProgress:
        return self.state_machine.progress

    @property
    def is_processing(self) -> bool:
        return self.state_machine.is_processing

    @property
    def current_scan(self) -> Optional[Future]:
        return self._current_scan

    def request_authorization(self, scan_on_grant: bool = True) -> AccessLevel:
        """
        Ask the source for access and start a scan when it is granted.

        Args:
            scan_on_grant: Start a scan as soon as access is granted

        Returns:
            The access level reported by the source
        """
        if not self.state_machine.begin_authorizing():
            logger.debug("Authorization skipped: manager is busy")
            return self.access_level

        try:
            level = self.source.request_access()
        except Exception as e:
            logger.error(f"Authorization request failed: {e}")
            level = AccessLevel.DENIED
        finally:
            self.state_machine.end_authorizing()

        self.access_level = level

        if level.is_authorized:
            self.authorized = True
            self.error_message = None
            if level is AccessLevel.LIMITED:
                logger.info("Limited library access: only accessible assets will be scanned")
            if scan_on_grant:
                self.find_duplicates()
        elif level is AccessLevel.DENIED:
            self.authorized = False
            self.error_message = DENIED_MESSAGE
            logger.warning("Library access denied")
        else:
            self.authorized = False
            logger.info("Library access not determined yet")

        return level

    def find_duplicates(self) -> Optional[Future]:
        """
        Start a scan unless one is already running.

        Returns:
            Future resolving to the scan's ScanResult. When a scan is already
            running its future is returned and no second scan starts.

        Raises:
            AuthorizationDeniedError: If the source has not granted access
        """
        if not self.authorized:
            raise AuthorizationDeniedError(self.error_message or DENIED_MESSAGE)

        with self._scan_lock:
            if not self.state_machine.try_begin_scan():
                logger.debug("Scan already in progress, not starting another")
                return self._current_scan
            return self._start_scan_locked()

    def cancel(self) -> bool:
        """Stop issuing fetches for the running scan. Returns False if idle."""
        return self.state_machine.request_cancel()

    def wait(self, timeout: Optional[float] = None) -> ScanResult:
        """Block until the current scan finishes and return the published result."""
        scan = self._current_scan
        if scan is not None:
            scan.result(timeout=timeout)
        return self.duplicates

    def delete_assets(
        self, assets: Union[DuplicateGroup, Sequence[Asset]]
    ) -> DeletionOutcome:
        """
        Delete a confirmed selection; a successful deletion triggers a re-scan.

        Nothing is deleted until the source has granted access.
        """
        if not self.authorized:
            logger.warning("Deletion refused: library access has not been granted")
            return DeletionOutcome(
                success=False, message=self.error_message or DENIED_MESSAGE
            )
        return self.deletion.delete(assets)

    def close(self) -> None:
        """Cancel any running scan and stop the processing thread."""
        self.cancel()
        self._executor.shutdown(wait=True)

    def _rescan_after_deletion(self) -> Optional[Future]:
        """
        Start a fresh scan, or queue one behind the scan already running.

        A running scan listed the library before the deletion, so its result
        cannot be trusted; the queued scan starts as soon as it finishes.
        """
        with self._scan_lock:
            if self.state_machine.try_begin_scan():
                return self._start_scan_locked()

            if not self.state_machine.is_processing:
                logger.debug(f"Re-scan not started: state is {self.state.value}")
                return None

            if self._pending_rescan is None:
                logger.info("Scan in progress; a fresh scan will follow it")
                self._pending_rescan = Future()
            self._current_scan = self._pending_rescan
            return self._pending_rescan

    def _start_scan_locked(self) -> Future:
        self.error_message = None
        scan = self._executor.submit(self._run_scan)

        pending, self._pending_rescan = self._pending_rescan, None
        if pending is not None:
            _chain(scan, pending)

        self._current_scan = scan
        return scan

    def _finish_scan(self) -> None:
        with self._scan_lock:
            self.state_machine.finish()
            if self._pending_rescan is None:
                return
            if not self.state_machine.try_begin_scan():
                # Authorization got in first; the next scan picks the request up
                return

            try:
                self._start_scan_locked()
            except RuntimeError as e:
                logger.warning(f"Queued re-scan dropped: {e}")
                self.state_machine.finish()
                pending, self._pending_rescan = self._pending_rescan, None
                pending.cancel()

    def _run_scan(self) -> ScanResult:
        try:
            assets = self.source.list_assets()
            self.state_machine.set_total(len(assets))
            logger.info(
                f"Scanning {len(assets)} assets for duplicates "
                f"(tier: {self.scheduler.tier.value}, limit: {self.scheduler.limit})"
            )

            self.grouper.reset()
            scanned = 0
            for outcome in self.scheduler.schedule_all(
                assets, should_stop=lambda: self.state_machine.cancel_requested
            ):
                scanned += 1
                self.grouper.add(outcome)
                self.state_machine.record(outcome.ok)

            cancelled = self.state_machine.cancel_requested
            result = self.grouper.build(scanned, cancelled=cancelled)
            self.grouper.reset()

            if cancelled:
                logger.info(
                    f"Scan cancelled after {scanned}/{len(assets)} assets; "
                    "keeping previous results"
                )
            else:
                self._publish(result)
            return result

        except Exception as e:
            logger.error(f"Scan failed: {e}")
            self.error_message = f"Failed to scan library: {e}"
            raise
        finally:
            self._finish_scan()

    def _publish(self, result: ScanResult) -> None:
        with self._result_lock:
            self._result = result
        logger.debug(f"Published {len(result)} duplicate groups")


def _chain(source: Future, target: Future) -> None:
    """Resolve ``target`` with whatever ``source`` resolves to."""

    def copy(done: Future) -> None:
        if target.done():
            return
        if done.cancelled():
            target.cancel()
        elif done.exception() is not None:
            target.set_exception(done.exception())
        else:
            target.set_result(done.result())

    source.add_done_callback(copy)
