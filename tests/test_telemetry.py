"""Test device telemetry readouts."""

from collections import namedtuple
from unittest.mock import patch

from clutter_cleaner.utils import telemetry

DiskUsage = namedtuple("DiskUsage", "total used free percent")


def test_disk_space_converts_to_gb(tmp_path):
    usage = DiskUsage(total=500e9, used=300e9, free=200e9, percent=60.0)
    with patch("clutter_cleaner.utils.telemetry.psutil.disk_usage", return_value=usage) as mock_usage:
        free, total = telemetry.disk_space(tmp_path)

    mock_usage.assert_called_once_with(str(tmp_path))
    assert free == 200.0
    assert total == 500.0


def test_disk_space_unreadable(tmp_path):
    with patch(
        "clutter_cleaner.utils.telemetry.psutil.disk_usage",
        side_effect=OSError("no such device"),
    ):
        assert telemetry.disk_space(tmp_path) == (0.0, 0.0)


def test_disk_space_real_filesystem(tmp_path):
    free, total = telemetry.disk_space(tmp_path)
    assert total > 0
    assert 0 <= free <= total


def test_memory_usage_is_positive():
    assert telemetry.memory_usage() > 0


def test_junk_size_sums_top_level_files(tmp_path):
    (tmp_path / "a.tmp").write_bytes(b"x" * 100)
    (tmp_path / "b.tmp").write_bytes(b"x" * 50)
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "c.tmp").write_bytes(b"x" * 1000)

    assert telemetry.junk_size(tmp_path) == 150


def test_junk_size_missing_directory(tmp_path):
    assert telemetry.junk_size(tmp_path / "missing") == 0
