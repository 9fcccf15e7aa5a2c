"""Shared fixtures: an in-memory asset source and isolated configuration."""

import logging
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from clutter_cleaner.core.errors import DeletionError, FetchError
from clutter_cleaner.core.models import AccessLevel, Asset, FetchTier
from clutter_cleaner.platforms.base import AssetSource
from clutter_cleaner.utils.config import Config


class FakeAssetSource(AssetSource):
    """Thread-safe in-memory library that records how it is used."""

    name = "fake"

    def __init__(
        self,
        contents: Dict[str, Optional[bytes]],
        access: AccessLevel = AccessLevel.AUTHORIZED,
        delay: float = 0.0,
        fail: Iterable[str] = (),
        delete_error: Optional[str] = None,
        release: Optional[threading.Event] = None,
    ):
        self.contents = dict(contents)
        self.access = access
        self.delay = delay
        self.fail = set(fail)
        self.delete_error = delete_error
        self.release = release

        self.lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0
        self.fetch_calls: List[str] = []
        self.delete_calls: List[List[str]] = []
        self.list_calls = 0
        self.list_error: Optional[Exception] = None

        base = datetime(2024, 1, 1, 12, 0, 0)
        self.created = {
            asset_id: base - timedelta(minutes=i)
            for i, asset_id in enumerate(self.contents)
        }

    def request_access(self) -> AccessLevel:
        return self.access

    def list_assets(self) -> List[Asset]:
        with self.lock:
            self.list_calls += 1
            if self.list_error is not None:
                raise self.list_error
            return [
                Asset(id=asset_id, created=self.created[asset_id], name=asset_id)
                for asset_id in self.contents
            ]

    def fetch_content(
        self, asset: Asset, tier: FetchTier, allow_network: bool
    ) -> Optional[bytes]:
        with self.lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.fetch_calls.append(asset.id)
        try:
            if self.release is not None:
                self.release.wait(timeout=5)
            if self.delay:
                time.sleep(self.delay)
            if asset.id in self.fail:
                raise FetchError(asset.id, "simulated failure")
            with self.lock:
                return self.contents.get(asset.id)
        finally:
            with self.lock:
                self.in_flight -= 1

    def delete_assets(self, asset_ids: Sequence[str]) -> None:
        with self.lock:
            self.delete_calls.append(list(asset_ids))
        if self.delete_error:
            raise DeletionError(self.delete_error)
        with self.lock:
            for asset_id in asset_ids:
                self.contents.pop(asset_id, None)


@pytest.fixture
def make_source():
    """Factory for FakeAssetSource instances."""
    return FakeAssetSource


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Configuration stored under a temporary directory."""
    return Config(tmp_path / "settings" / "config.json")


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers the CLI installs so later tests never log to closed streams."""
    yield
    logging.getLogger("clutter_cleaner").handlers.clear()
