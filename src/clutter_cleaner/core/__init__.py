"""Core duplicate-detection pipeline."""

from clutter_cleaner.core.deletion import DeletionCoordinator
from clutter_cleaner.core.grouper import DuplicateGrouper
from clutter_cleaner.core.hasher import Hasher
from clutter_cleaner.core.manager import LibraryManager
from clutter_cleaner.core.scheduler import FetchScheduler
from clutter_cleaner.core.state import ProcessingStateMachine

__all__ = [
    "DeletionCoordinator",
    "DuplicateGrouper",
    "FetchScheduler",
    "Hasher",
    "LibraryManager",
    "ProcessingStateMachine",
]
