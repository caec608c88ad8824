"""Tests for change-triggered regeneration."""

import os
import threading
import time

from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from inksite_pkg.watcher import ChangeHandler, RegenerationQueue, RegenerationWorker


class TestRegenerationQueue:
    """Test cases for RegenerationQueue."""

    def test_claim_reads_and_clears(self):
        queue = RegenerationQueue()
        assert queue.claim() is False

        queue.signal()
        assert queue.pending
        assert queue.claim() is True
        assert queue.claim() is False

    def test_signals_collapse_into_one_token(self):
        queue = RegenerationQueue()
        queue.signal()
        queue.signal()
        queue.signal()
        assert queue.drain(lambda: None) == 1

    def test_change_during_pass_triggers_another_pass(self):
        """A signal arriving mid-pass is picked up before returning to idle."""
        queue = RegenerationQueue()
        calls = []

        def regenerate():
            calls.append(len(calls))
            if len(calls) == 1:
                queue.signal()

        queue.signal()

        assert queue.drain(regenerate) == 2
        assert not queue.pending

    def test_drain_without_token_does_nothing(self):
        calls = []
        assert RegenerationQueue().drain(lambda: calls.append(1)) == 0
        assert calls == []

    def test_wait_times_out(self):
        assert RegenerationQueue().wait(0.01) is False


class TestRegenerationWorker:
    """Test cases for RegenerationWorker."""

    def test_worker_regenerates_on_signal(self):
        queue = RegenerationQueue()
        done = threading.Event()
        worker = RegenerationWorker(queue, done.set, interval=0.05)
        worker.start()
        try:
            queue.signal()
            assert done.wait(5)
        finally:
            worker.stop()
            worker.join(5)
        assert not worker.is_alive()

    def test_worker_survives_failing_pass(self):
        queue = RegenerationQueue()
        attempts = []
        recovered = threading.Event()

        def regenerate():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError('build failed')
            recovered.set()

        worker = RegenerationWorker(queue, regenerate, interval=0.05)
        worker.start()
        try:
            queue.signal()
            while not attempts:
                time.sleep(0.01)
            queue.signal()
            assert recovered.wait(5)
        finally:
            worker.stop()
            worker.join(5)


class TestChangeHandler:
    """Test cases for ChangeHandler."""

    def test_file_change_signals(self, temp_dir):
        queue = RegenerationQueue()
        handler = ChangeHandler(queue)
        handler.on_any_event(FileModifiedEvent(os.path.join(temp_dir, 'pages', 'index.html')))
        assert queue.pending

    def test_directory_modified_is_ignored(self, temp_dir):
        queue = RegenerationQueue()
        ChangeHandler(queue).on_any_event(DirModifiedEvent(temp_dir))
        assert not queue.pending

    def test_ignored_directories(self, temp_dir):
        output_dir = os.path.join(temp_dir, '_public')
        queue = RegenerationQueue()
        handler = ChangeHandler(queue, ignored_dirs=[output_dir, None])

        handler.on_any_event(FileCreatedEvent(os.path.join(output_dir, 'index.html')))
        assert not queue.pending

        handler.on_any_event(FileCreatedEvent(os.path.join(temp_dir, '_public_notes.txt')))
        assert queue.pending
