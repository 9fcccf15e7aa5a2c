"""Test the processing state machine."""

import threading

from clutter_cleaner.core.models import ScanState
from clutter_cleaner.core.state import ProcessingStateMachine


def test_starts_idle():
    machine = ProcessingStateMachine()
    assert machine.state is ScanState.IDLE
    assert not machine.is_processing
    assert not machine.cancel_requested


def test_scan_lifecycle():
    """IDLE -> SCANNING -> CANCELLING -> IDLE."""
    machine = ProcessingStateMachine()

    assert machine.try_begin_scan() is True
    assert machine.state is ScanState.SCANNING
    assert machine.is_processing

    assert machine.request_cancel() is True
    assert machine.state is ScanState.CANCELLING
    assert machine.cancel_requested
    assert machine.is_processing

    machine.finish()
    assert machine.state is ScanState.IDLE


def test_second_scan_rejected_while_running():
    machine = ProcessingStateMachine()
    assert machine.try_begin_scan()
    assert machine.try_begin_scan() is False
    machine.finish()
    assert machine.try_begin_scan() is True


def test_cancel_when_idle_is_noop():
    machine = ProcessingStateMachine()
    assert machine.request_cancel() is False
    assert machine.state is ScanState.IDLE


def test_authorizing_blocks_scan():
    machine = ProcessingStateMachine()
    assert machine.begin_authorizing()
    assert machine.state is ScanState.AUTHORIZING
    assert machine.begin_authorizing() is False
    assert machine.try_begin_scan() is False

    machine.end_authorizing()
    assert machine.state is ScanState.IDLE
    assert machine.try_begin_scan()


def test_progress_counters_reset_on_new_scan():
    machine = ProcessingStateMachine()
    machine.try_begin_scan()
    machine.set_total(4)
    machine.record(True)
    machine.record(False)

    progress = machine.progress
    assert progress.total == 4
    assert progress.completed == 2
    assert progress.failed == 1
    assert progress.fraction == 0.5

    machine.finish()
    machine.try_begin_scan()
    assert machine.progress.completed == 0
    assert machine.progress.failed == 0


def test_only_one_racing_caller_begins_scan():
    """Concurrent start attempts admit exactly one scan."""
    machine = ProcessingStateMachine()
    barrier = threading.Barrier(8)
    started = []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        if machine.try_begin_scan():
            with lock:
                started.append(True)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(started) == 1
