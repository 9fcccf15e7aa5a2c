"""Test the deletion coordinator."""

from datetime import datetime
from unittest.mock import Mock

import pytest

from clutter_cleaner.core.deletion import DeletionCoordinator
from clutter_cleaner.core.errors import DELETE_FAILED_MESSAGE
from clutter_cleaner.core.models import Asset, DeletionPolicy, DuplicateGroup


@pytest.fixture
def group():
    return DuplicateGroup(
        digest="d1",
        assets=(
            Asset(id="A", created=datetime(2023, 1, 1)),
            Asset(id="B", created=datetime(2024, 1, 1)),
            Asset(id="C", created=datetime(2022, 1, 1)),
        ),
    )


def test_delete_all_removes_every_member(make_source, group):
    """The default policy deletes the whole group, last copy included."""
    source = make_source({"A": b"x", "B": b"x", "C": b"x"})
    rescan = Mock(return_value="future")
    coordinator = DeletionCoordinator(source, rescan=rescan)

    outcome = coordinator.delete(group)

    assert outcome.success
    assert set(outcome.deleted) == {"A", "B", "C"}
    assert outcome.kept == ()
    assert source.delete_calls == [["A", "B", "C"]]
    rescan.assert_called_once_with()
    assert outcome.rescan == "future"


@pytest.mark.parametrize(
    "policy,survivor",
    [(DeletionPolicy.KEEP_NEWEST, "B"), (DeletionPolicy.KEEP_OLDEST, "C")],
)
def test_keep_policies_spare_one(make_source, group, policy, survivor):
    source = make_source({"A": b"x", "B": b"x", "C": b"x"})
    coordinator = DeletionCoordinator(source, policy=policy)

    outcome = coordinator.delete(group)

    assert outcome.success
    assert outcome.kept == (survivor,)
    assert survivor not in source.delete_calls[0]
    assert len(source.delete_calls[0]) == 2


def test_keep_policy_on_single_asset_deletes_it(make_source):
    coordinator = DeletionCoordinator(
        make_source({"A": b"x"}), policy=DeletionPolicy.KEEP_NEWEST
    )
    to_delete, to_keep = coordinator.select([Asset(id="A")])
    assert [a.id for a in to_delete] == ["A"]
    assert to_keep == []


def test_empty_selection_is_rejected(make_source):
    source = make_source({})
    rescan = Mock()
    outcome = DeletionCoordinator(source, rescan=rescan).delete([])

    assert not outcome.success
    assert outcome.message == "No assets selected for deletion"
    assert source.delete_calls == []
    rescan.assert_not_called()


def test_failure_message_is_passed_through(make_source, group):
    """The source's message is reported verbatim and no re-scan happens."""
    source = make_source({"A": b"x"}, delete_error="Drive quota exceeded")
    rescan = Mock()

    outcome = DeletionCoordinator(source, rescan=rescan).delete(group)

    assert not outcome.success
    assert outcome.message == "Drive quota exceeded"
    assert outcome.deleted == ()
    assert len(source.delete_calls) == 1
    rescan.assert_not_called()


def test_unexpected_exception_is_reported(group):
    source = Mock()
    source.delete_assets.side_effect = OSError("disk on fire")

    outcome = DeletionCoordinator(source).delete(group)

    assert not outcome.success
    assert outcome.message == "disk on fire"
    source.delete_assets.assert_called_once()


def test_exception_without_message_uses_default(group):
    source = Mock()
    source.delete_assets.side_effect = RuntimeError()

    outcome = DeletionCoordinator(source).delete(group)

    assert outcome.message == DELETE_FAILED_MESSAGE


def test_without_rescan_callback(make_source, group):
    outcome = DeletionCoordinator(make_source({})).delete(group)
    assert outcome.success
    assert outcome.rescan is None


def test_rescan_error_does_not_hide_successful_deletion(make_source, group):
    """Once the source has deleted, the outcome is a success even if no re-scan starts."""
    source = make_source({"A": b"x", "B": b"x", "C": b"x"})
    rescan = Mock(side_effect=RuntimeError("executor shut down"))

    outcome = DeletionCoordinator(source, rescan=rescan).delete(group)

    assert outcome.success
    assert set(outcome.deleted) == {"A", "B", "C"}
    assert outcome.rescan is None
    rescan.assert_called_once_with()
