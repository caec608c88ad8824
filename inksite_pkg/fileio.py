"""
File helpers that tolerate transient failures.

Output files are often held open by a browser or a sync client while a site
is regenerated, so reads and copies are retried a few times before giving up,
and writes are skipped when the content has not changed.
"""

import logging
import os
import re
import shutil
import stat
import time

logger = logging.getLogger('InkSite.FileIO')

RETRY_ATTEMPTS = 10
RETRY_DELAY = 0.1


def read_text(path, attempts=RETRY_ATTEMPTS, delay=RETRY_DELAY):
    """Read a UTF-8 text file, retrying on failure.

    Bytes that are not valid UTF-8 are replaced rather than rejected.
    Returns an empty string if the file does not exist or every attempt
    fails; this never raises.
    """
    if not os.path.isfile(path):
        return ''

    for attempt in range(1, attempts + 1):
        try:
            with open(path, 'r', encoding='utf-8', errors='replace') as f:
                return f.read()
        except (IOError, OSError, PermissionError) as e:
            logger.debug(f"Read attempt {attempt} failed for {path}: {e}")
            if attempt < attempts:
                time.sleep(delay)

    logger.error(f"Failed to read {path} after {attempts} attempts")
    return ''


def read_lines(path, attempts=RETRY_ATTEMPTS, delay=RETRY_DELAY):
    return read_text(path, attempts, delay).splitlines()


def write_text_if_changed(path, text, attempts=RETRY_ATTEMPTS, delay=RETRY_DELAY):
    """Write *text* to *path* unless the file already holds exactly that text.

    Clears a read-only attribute before overwriting. Returns True when the
    file was written; a write that still fails after every retry is logged
    and returns False.
    """
    if os.path.isfile(path):
        try:
            with open(path, 'r', encoding='utf-8', newline='') as f:
                if f.read() == text:
                    return False
        except (IOError, OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not compare existing file {path}: {e}")

        if not os.access(path, os.W_OK):
            os.chmod(path, os.stat(path).st_mode | stat.S_IWRITE)

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    for attempt in range(1, attempts + 1):
        try:
            with open(path, 'w', encoding='utf-8', newline='') as f:
                f.write(text)
            logger.debug(f"Wrote {path}")
            return True
        except (IOError, OSError, PermissionError) as e:
            logger.debug(f"Write attempt {attempt} failed for {path}: {e}")
            if attempt < attempts:
                time.sleep(delay)

    logger.warning(f"File write failed for {path} - probably in use, skipped.")
    return False


class IgnoreList:
    """Regular-expression patterns, one per line, for paths not to copy."""

    def __init__(self, patterns=None):
        self.patterns = [re.compile(p) for p in (patterns or [])]

    def load(self, path):
        for line in read_lines(path):
            pattern = line.strip()
            if not pattern:
                continue
            try:
                self.patterns.append(re.compile(pattern))
            except re.error as e:
                logger.warning(f"Ignoring invalid pattern {pattern!r} in {path}: {e}")
        return self

    def is_ignored(self, path):
        normalized = path.replace('\\', '/')
        return any(pattern.search(normalized) for pattern in self.patterns)


def copy_file(source, destination, ignore_list=None, attempts=RETRY_ATTEMPTS, delay=RETRY_DELAY):
    """Copy *source* to *destination* if it is missing or older.

    Returns True if the file was copied. Ignored and up-to-date files return
    False, as does a copy that still fails after every retry (logged, not
    raised).
    """
    if ignore_list is not None and ignore_list.is_ignored(source):
        logger.debug(f"Ignored {source}")
        return False

    if os.path.exists(destination) and \
            os.path.getmtime(destination) >= os.path.getmtime(source):
        return False

    os.makedirs(os.path.dirname(destination) or '.', exist_ok=True)

    for attempt in range(1, attempts + 1):
        try:
            shutil.copy2(source, destination)
            logger.debug(f"Copied {source} -> {destination}")
            return True
        except (IOError, OSError, PermissionError) as e:
            logger.debug(f"Copy attempt {attempt} failed for {destination}: {e}")
            if attempt < attempts:
                time.sleep(delay)

    logger.warning(f"File copy failed for {destination} - probably in use, skipped.")
    return False
