"""Exceptions raised by pystack.

Everything derives from PystackError so the CLI can tell our own, already
human readable failures apart from bugs.
"""

from typing import List


class PystackError(Exception):
    """Base class for pystack failures."""


class ExitFailedError(PystackError):
    """An underlying git or GitHub call failed."""


class PreconditionsFailedError(PystackError):
    """The state an operation needs is not there. Raised before any mutation."""


class NoStagedChangesError(PreconditionsFailedError):
    def __init__(self) -> None:
        super().__init__("There are no staged changes. Stage changes first or pass --all.")


class DetachedError(PreconditionsFailedError):
    def __init__(self) -> None:
        super().__init__("Cannot perform this operation without a branch checked out.")


class UntrackedBranchError(PreconditionsFailedError):
    def __init__(self, branch_name: str) -> None:
        self.branch_name = branch_name
        super().__init__(
            f"Cannot perform this operation on untracked branch {branch_name}.\n"
            f"You can track it by specifying its parent with `pystack track {branch_name} --parent <parent>`."
        )


class BadTrunkOperationError(PreconditionsFailedError):
    def __init__(self) -> None:
        super().__init__("Cannot perform this operation on the trunk branch.")


class RebaseConflictError(PystackError):
    """A rebase stopped on conflicts. Recoverable with `pystack continue`."""

    def __init__(self, branch_name: str, remaining: List[str]) -> None:
        self.branch_name = branch_name
        self.remaining = remaining
        super().__init__(f"Hit a conflict while restacking {branch_name}.")


class ConcurrentExecutionError(PystackError):
    def __init__(self) -> None:
        super().__init__("Cannot run more than one pystack process at once.")


class NoBranchError(PystackError):
    """A branch or reference could not be resolved."""

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f"Could not find branch {ref}.")


class KilledError(PystackError):
    def __init__(self) -> None:
        super().__init__("Killed pystack early.")


class StackConsistencyError(PystackError):
    """Stored parent links disagree with the tree built from them."""
