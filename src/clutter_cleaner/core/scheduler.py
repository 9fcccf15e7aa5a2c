"""Admission-controlled concurrent fetching of asset content."""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Iterator, List, Optional

from clutter_cleaner.core.models import Asset, FetchOutcome, FetchTier
from clutter_cleaner.platforms.base import AssetSource

logger = logging.getLogger(__name__)


class _Dispatched:
    """Posted once dispatching ends; carries the number of issued fetches."""

    __slots__ = ("issued",)

    def __init__(self, issued: int):
        self.issued = issued


class FetchScheduler:
    """
    Fetches many assets while never running more than ``limit`` at once.

    A dispatcher thread acquires a slot on a bounded semaphore before issuing
    each fetch to a thread pool. Every fetch hands its outcome to a bounded
    queue and then releases its slot, whatever happened. The queue is the
    only channel back to the caller, so a single consumer sees every outcome
    and at most ``2 * limit`` fetched buffers are alive at any time.
    """

    DEFAULT_LIMIT = 5

    def __init__(
        self,
        source: AssetSource,
        limit: int = DEFAULT_LIMIT,
        tier: FetchTier = FetchTier.ORIGINAL,
        allow_network: bool = False,
    ):
        """
        Initialize the scheduler.

        Args:
            source: Asset source to fetch from
            limit: Maximum number of fetches in flight at once
            tier: Representation to request from the source
            allow_network: Whether the source may go to the network

        Raises:
            ValueError: If limit is less than 1
        """
        if limit < 1:
            raise ValueError(f"Fetch limit must be at least 1, got {limit}")

        self.source = source
        self.limit = limit
        self.tier = tier
        self.allow_network = allow_network

        self.peak_in_flight = 0
        self._in_flight = 0
        self._counter_lock = threading.Lock()

    @property
    def in_flight(self) -> int:
        with self._counter_lock:
            return self._in_flight

    def schedule_all(
        self,
        assets: Iterable[Asset],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> Iterator[FetchOutcome]:
        """
        Fetch every asset and yield outcomes in completion order.

        The iterator ends only after every issued fetch has reported. When
        ``should_stop`` returns True no further fetches are issued, but the
        ones already running are allowed to finish and are still yielded.

        Args:
            assets: Assets to fetch, in dispatch order
            should_stop: Optional cancellation check, polled before each dispatch

        Yields:
            One FetchOutcome per issued fetch
        """
        results: "queue.Queue[object]" = queue.Queue(maxsize=self.limit)
        abandoned = threading.Event()
        errors: List[Exception] = []

        dispatcher = threading.Thread(
            target=self._dispatch,
            args=(assets, results, abandoned, should_stop, errors),
            name="fetch-dispatcher",
            daemon=True,
        )
        dispatcher.start()

        issued: Optional[int] = None
        received = 0
        try:
            while issued is None or received < issued:
                item = results.get()
                if isinstance(item, _Dispatched):
                    issued = item.issued
                    continue
                received += 1
                yield item
        finally:
            if issued is None or received < issued:
                # Consumer stopped early: stop dispatching and let in-flight fetches drain
                abandoned.set()
                while issued is None or received < issued:
                    item = results.get()
                    if isinstance(item, _Dispatched):
                        issued = item.issued
                    else:
                        received += 1
            dispatcher.join()

        if errors:
            raise errors[0]

    def _dispatch(
        self,
        assets: Iterable[Asset],
        results: "queue.Queue[object]",
        abandoned: threading.Event,
        should_stop: Optional[Callable[[], bool]],
        errors: List[Exception],
    ) -> None:
        gate = threading.BoundedSemaphore(self.limit)
        issued = 0

        def stopping() -> bool:
            return abandoned.is_set() or bool(should_stop and should_stop())

        try:
            with ThreadPoolExecutor(
                max_workers=self.limit, thread_name_prefix="fetch"
            ) as executor:
                for asset in assets:
                    if stopping():
                        logger.info(f"Fetch dispatch stopped after {issued} assets")
                        break

                    gate.acquire()
                    if stopping():
                        gate.release()
                        logger.info(f"Fetch dispatch stopped after {issued} assets")
                        break

                    try:
                        executor.submit(self._fetch_one, asset, gate, results)
                    except RuntimeError:
                        gate.release()
                        raise
                    issued += 1
        except Exception as e:
            logger.error(f"Fetch dispatch failed: {e}")
            errors.append(e)
        finally:
            # Executor exit has joined every worker, so all outcomes precede this
            results.put(_Dispatched(issued))

    def _fetch_one(
        self,
        asset: Asset,
        gate: threading.BoundedSemaphore,
        results: "queue.Queue[object]",
    ) -> None:
        with self._counter_lock:
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)

        outcome = FetchOutcome(asset=asset)
        try:
            data = self.source.fetch_content(asset, self.tier, self.allow_network)
            if data is None:
                logger.debug(f"No data returned for {asset.id}, skipping")
                outcome.error = "no data"
            else:
                outcome.data = data
        except Exception as e:
            logger.warning(f"Failed to fetch {asset.id}: {e}")
            outcome.error = str(e) or e.__class__.__name__
        finally:
            with self._counter_lock:
                self._in_flight -= 1
            try:
                results.put(outcome)
            finally:
                gate.release()
