"""
Change-triggered regeneration.

File system events only set a pending token; a single worker thread claims
the token and regenerates, so passes never overlap and a change that lands
during a pass starts another pass as soon as the current one finishes.
"""

import logging
import os
import threading
import time

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger('InkSite.Watcher')


class RegenerationQueue:
    """At most one pending regeneration request."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending = False
        self._wakeup = threading.Event()

    @property
    def pending(self):
        with self._lock:
            return self._pending

    def signal(self):
        with self._lock:
            self._pending = True
        self._wakeup.set()

    def claim(self):
        """Atomically read and clear the pending token."""
        with self._lock:
            pending = self._pending
            self._pending = False
            return pending

    def wait(self, timeout=None):
        woken = self._wakeup.wait(timeout)
        self._wakeup.clear()
        return woken

    def drain(self, regenerate):
        """Regenerate until no token is pending; returns the number of passes."""
        passes = 0
        while self.claim():
            regenerate()
            passes += 1
        return passes


class RegenerationWorker(threading.Thread):
    """Background thread that runs ``regenerate`` whenever the queue is signalled."""

    def __init__(self, queue, regenerate, interval=0.5):
        super().__init__(name='inksite-regenerate', daemon=True)
        self.queue = queue
        self.regenerate = regenerate
        self.interval = interval
        self._stopping = threading.Event()

    def run(self):
        while not self._stopping.is_set():
            self.queue.wait(self.interval)
            if self._stopping.is_set():
                break
            try:
                self.queue.drain(self.regenerate)
            except Exception as e:
                logger.exception(f"Regeneration failed: {e}")

    def stop(self):
        self._stopping.set()
        self.queue.signal()


class ChangeHandler(FileSystemEventHandler):
    """Signal the queue for any change outside the ignored directories."""

    def __init__(self, queue, ignored_dirs=()):
        super().__init__()
        self.queue = queue
        self.ignored_dirs = [os.path.abspath(d) for d in ignored_dirs if d]

    def is_ignored(self, path):
        path = os.path.abspath(path)
        return any(path == d or path.startswith(d + os.sep) for d in self.ignored_dirs)

    def on_any_event(self, event):
        if event.is_directory and event.event_type == 'modified':
            return
        path = os.fsdecode(event.src_path)
        if self.is_ignored(path):
            return
        logger.info(f"Change detected ({event.event_type}) at {time.strftime('%H:%M:%S')}: {path}")
        self.queue.signal()


def start_watching(input_dir, queue, ignored_dirs=()):
    """Start a recursive watchdog observer on *input_dir*; returns the observer."""
    observer = Observer()
    observer.schedule(ChangeHandler(queue, ignored_dirs), input_dir, recursive=True)
    observer.start()
    logger.info(f"Watching {input_dir} for changes")
    return observer
