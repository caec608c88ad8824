"""Stack of variable scopes used while composing pages."""

import logging
from contextlib import contextmanager
from typing import Dict, List, Tuple

from .directives import parse_assignment
from .fileio import read_lines

logger = logging.getLogger('InkSite.Variables')


class VariableStack:
    """Ordered stack of ``name -> value`` frames.

    Lookups search from the top frame down, so an inner scope shadows the
    outer ones until it is popped. The bottom frame holds the site-wide
    variables and is never removed.
    """

    def __init__(self):
        self._frames: List[Dict[str, str]] = [{}]

    @property
    def depth(self) -> int:
        return len(self._frames)

    def push(self):
        self._frames.append({})

    def pop(self):
        if len(self._frames) == 1:
            logger.warning("Attempted to pop the root variable frame; ignored.")
            return
        self._frames.pop()

    @contextmanager
    def scope(self):
        self.push()
        try:
            yield self
        finally:
            self.pop()

    def define(self, name: str, value: str):
        self._frames[-1][name] = value

    def lookup(self, name: str) -> str:
        for frame in reversed(self._frames):
            if name in frame:
                return frame[name]
        return ''

    def load_initial(self, path: str) -> int:
        """Seed the bottom frame from a ``$(name) = "value"`` file.

        Bare ``name = "value"`` lines are accepted as well. Returns the number
        of variables loaded; a missing file loads nothing.
        """
        count = 0
        for line in read_lines(path):
            assignment = parse_assignment(line, bare_names=True)
            if assignment:
                name, value = assignment
                self._frames[0][name] = value
                count += 1
        logger.debug(f"Loaded {count} root variables from {path}")
        return count

    def dump(self) -> List[Tuple[int, str, str]]:
        """Return ``(level, name, value)`` for every variable, top frame first."""
        entries = []
        for level in range(len(self._frames) - 1, -1, -1):
            for name, value in self._frames[level].items():
                entries.append((level, name, value))
        return entries

    def render_dump(self, start: str = '', end: str = '') -> str:
        return ''.join(
            f'{start}(Level {level}) - "$({name})" = "{value}"{end}'
            for level, name, value in self.dump()
        )
