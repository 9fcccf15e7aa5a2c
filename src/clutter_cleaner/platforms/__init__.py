"""Asset sources for different storage backends."""

from clutter_cleaner.platforms.base import AssetSource
from clutter_cleaner.platforms.local import LocalPhotoLibrary

__all__ = ["AssetSource", "LocalPhotoLibrary"]
