"""Device readouts: disk space, process memory and temp-directory clutter."""

import logging
import tempfile
from pathlib import Path
from typing import Optional, Tuple

import psutil

logger = logging.getLogger(__name__)

GB = 1e9


def disk_space(path: Optional[Path] = None) -> Tuple[float, float]:
    """
    Free and total space of the filesystem holding ``path``.

    Args:
        path: Any path on the filesystem (default: home directory)

    Returns:
        (free_gb, total_gb), or (0.0, 0.0) if the filesystem cannot be queried
    """
    target = path or Path.home()
    try:
        usage = psutil.disk_usage(str(target))
    except OSError as e:
        logger.warning(f"Cannot read disk usage for {target}: {e}")
        return 0.0, 0.0
    return usage.free / GB, usage.total / GB


def memory_usage() -> float:
    """Resident memory of this process in GB."""
    return psutil.Process().memory_info().rss / GB


def junk_size(directory: Optional[Path] = None) -> int:
    """
    Total size in bytes of the files directly inside the temp directory.

    Args:
        directory: Directory to measure (default: the system temp directory)
    """
    target = Path(directory) if directory else Path(tempfile.gettempdir())
    total = 0
    try:
        entries = list(target.iterdir())
    except OSError as e:
        logger.warning(f"Cannot list {target}: {e}")
        return 0

    for entry in entries:
        try:
            if entry.is_file() and not entry.is_symlink():
                total += entry.stat().st_size
        except OSError:
            continue
    return total
