"""
Photo Clutter Cleaner - find and remove byte-identical photos.

Scans a photo library with bounded concurrency, groups assets whose content
hashes match, and deletes confirmed groups through the library itself.
"""

__version__ = "0.1.0"
__author__ = "Photo Clutter Cleaner Contributors"

from clutter_cleaner.core.manager import LibraryManager
from clutter_cleaner.core.models import DuplicateGroup, ScanResult
from clutter_cleaner.platforms.local import LocalPhotoLibrary

__all__ = [
    "DuplicateGroup",
    "LibraryManager",
    "LocalPhotoLibrary",
    "ScanResult",
    "__version__",
]
