"""
Fault kinds raised while composing a page.

None of these stop a build: the composer catches ``CompositionError`` where a
directive is evaluated and renders it inline as a diagnostic block.
"""


class CompositionError(Exception):
    """Base class for faults that are reported inline and then skipped."""

    kind = 'CompositionError'

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class UnresolvedInclude(CompositionError):
    """An include or layout target was not found in any candidate directory."""

    kind = 'UnresolvedInclude'

    def __init__(self, requested, searched):
        self.requested = requested
        self.searched = list(searched)
        super().__init__(f'Include "{requested}" not found.')


class IllegalSectionNesting(CompositionError):
    kind = 'IllegalSectionNesting'

    def __init__(self, name, open_name):
        self.name = name
        self.open_name = open_name
        super().__init__(
            f'Nesting not allowed. Attempt to nest section "{name}" inside section "{open_name}"'
        )


class ReservedSectionName(CompositionError):
    kind = 'ReservedSectionName'

    def __init__(self, name):
        self.name = name
        super().__init__(f"Section '{name}' is a reserved name and may not be used.")


class CyclicInclude(CompositionError):
    """A file was reopened while it is still open in the composition chain."""

    kind = 'CyclicInclude'

    def __init__(self, path, chain):
        self.path = path
        self.chain = list(chain)
        super().__init__(f'"{path}" is already being composed; cyclic include or layout.')


class MissingArgument(CompositionError):
    kind = 'MissingArgument'

    def __init__(self, command, expected):
        self.command = command
        super().__init__(f'"{command}" expects {expected}.')
