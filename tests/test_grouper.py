"""Test the duplicate grouper."""

from datetime import datetime

import pytest

from clutter_cleaner.core.grouper import DuplicateGrouper
from clutter_cleaner.core.hasher import Hasher
from clutter_cleaner.core.models import Asset, DuplicateGroup, FetchOutcome


def _outcome(asset_id, data, created=None, error=None):
    return FetchOutcome(
        asset=Asset(id=asset_id, created=created), data=data, error=error
    )


def test_groups_identical_content():
    """A and B share content, C and D are unique."""
    outcomes = [
        _outcome("A", b"X"),
        _outcome("B", b"X"),
        _outcome("C", b"Y"),
        _outcome("D", b"Z"),
    ]

    result = DuplicateGrouper().group(outcomes)

    assert len(result) == 1
    group = result.groups[0]
    assert set(group.asset_ids) == {"A", "B"}
    assert group.digest == Hasher().digest(b"X")
    assert result.scanned == 4
    assert result.skipped == 0


def test_failed_fetch_is_excluded():
    outcomes = [
        _outcome("A", b"X"),
        _outcome("B", b"X"),
        _outcome("E", None, error="boom"),
    ]

    result = DuplicateGrouper().group(outcomes)

    assert len(result) == 1
    assert "E" not in result.groups[0].asset_ids
    assert result.skipped == 1
    assert result.find_group("E") is None


def test_empty_input_gives_empty_result():
    result = DuplicateGrouper().group([])
    assert len(result) == 0
    assert result.scanned == 0


def test_all_unique_gives_no_groups():
    outcomes = [_outcome(str(i), bytes([i])) for i in range(10)]
    assert len(DuplicateGrouper().group(outcomes)) == 0


def test_repeated_outcome_is_ignored():
    """An asset reported twice lands in its group once."""
    grouper = DuplicateGrouper()
    grouper.reset()
    assert grouper.add(_outcome("A", b"X")) is not None
    assert grouper.add(_outcome("A", b"X")) is None

    assert len(grouper.build(scanned=2)) == 0


def test_empty_buffers_group_together():
    outcomes = [_outcome("A", b""), _outcome("B", b"")]
    result = DuplicateGrouper().group(outcomes)
    assert len(result) == 1


def test_groups_are_disjoint_and_cover_duplicates():
    outcomes = [
        _outcome("A", b"1"),
        _outcome("B", b"2"),
        _outcome("C", b"1"),
        _outcome("D", b"2"),
        _outcome("E", b"1"),
    ]

    result = DuplicateGrouper().group(outcomes)

    ids = [asset_id for group in result for asset_id in group.asset_ids]
    assert len(ids) == len(set(ids))
    assert sorted(ids) == ["A", "B", "C", "D", "E"]
    assert result.duplicate_count == 5


def test_groups_ordered_by_newest_member():
    outcomes = [
        _outcome("old1", b"1", created=datetime(2020, 1, 1)),
        _outcome("old2", b"1", created=datetime(2020, 6, 1)),
        _outcome("new1", b"2", created=datetime(2024, 1, 1)),
        _outcome("new2", b"2", created=None),
        _outcome("undated1", b"3"),
        _outcome("undated2", b"3"),
    ]

    result = DuplicateGrouper().group(outcomes)

    assert [g.newest.id for g in result] == ["new1", "old2", "undated1"]


def test_reset_clears_previous_scan():
    grouper = DuplicateGrouper()
    grouper.group([_outcome("A", b"X"), _outcome("B", b"X")])

    result = grouper.group([_outcome("C", b"Y")])

    assert len(result) == 0
    assert result.skipped == 0


def test_group_requires_two_members():
    with pytest.raises(ValueError):
        DuplicateGroup(digest="abc", assets=(Asset(id="A"),))


def test_custom_hasher_is_used():
    class FirstByteHasher(Hasher):
        def digest(self, data):
            return data[:1].hex()

    outcomes = [_outcome("A", b"x1"), _outcome("B", b"x2")]
    result = DuplicateGrouper(FirstByteHasher()).group(outcomes)

    assert len(result) == 1
    assert result.groups[0].digest == b"x".hex()
