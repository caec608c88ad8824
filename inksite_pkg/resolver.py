"""Priority-ordered search for include and layout files."""

import os
from dataclasses import dataclass, field
from typing import Iterable, List, Optional


@dataclass
class ResolveResult:
    requested: str
    path: Optional[str] = None
    searched: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.path is not None


def resolve_path(directories: Iterable[str], filename: str) -> ResolveResult:
    """Return the first ``directory/filename`` that exists.

    Directories are probed in the order given; a directory listed twice is
    only probed once. On failure ``searched`` holds every path tried.
    """
    result = ResolveResult(requested=filename)
    seen = set()

    for directory in directories:
        key = os.path.normcase(os.path.normpath(directory))
        if key in seen:
            continue
        seen.add(key)

        candidate = os.path.join(directory, filename)
        result.searched.append(candidate)
        if os.path.isfile(candidate):
            result.path = candidate
            return result

    return result
