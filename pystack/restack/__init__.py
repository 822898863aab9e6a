"""Cascading rebase of branches onto their parents.

Branches are handled strictly in the order given, which callers derive from
a parent-before-child walk, so every parent is final before its children
are rebased onto it. When a rebase stops on conflicts the remaining work is
written to a continuation file in the git dir and `pystack continue` picks
it up after the user resolves the conflict.
"""

import os
import logging
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ..context import Context
from ..errors import PreconditionsFailedError, RebaseConflictError
from ..metadata import Scope
from ..typing import GitInterface, RevisionId

logger = logging.getLogger(__name__)

CONTINUATION_FILE_NAME = "pystack_continue.json"


class RestackResult(Enum):
    DONE = "done"
    UNNEEDED = "unneeded"
    CONFLICT = "conflict"


class Continuation(BaseModel):
    """A restack halted on a conflict."""
    branch_name: str
    parent_revision: str
    remaining_branches: List[str] = Field(default_factory=list)
    original_branch: Optional[str] = None


def continuation_path(git_cmd: GitInterface) -> str:
    return os.path.join(git_cmd.git_dir(), CONTINUATION_FILE_NAME)


def load_continuation(git_cmd: GitInterface) -> Optional[Continuation]:
    path = continuation_path(git_cmd)
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return Continuation.model_validate_json(f.read())


def save_continuation(git_cmd: GitInterface, continuation: Continuation) -> None:
    with open(continuation_path(git_cmd), "w") as f:
        f.write(continuation.model_dump_json(indent=2))


def clear_continuation(git_cmd: GitInterface) -> None:
    path = continuation_path(git_cmd)
    if os.path.exists(path):
        os.remove(path)


def restack_branch(branch: str, context: Context) -> Tuple[RestackResult, RevisionId]:
    """Rebase one branch onto the current tip of its parent."""
    store = context.store
    parent = store.get_parent_precondition(branch)
    parent_revision = store.get_revision(parent)
    meta = store.read(branch)
    stored_revision = meta.parent_branch_revision if meta is not None else None

    if stored_revision == parent_revision:
        logger.debug(f"{branch} is already based on {parent} at {parent_revision[:8]}")
        return RestackResult.UNNEEDED, parent_revision

    old_base = stored_revision or context.git_cmd.merge_base(parent, branch)
    logger.debug(f"Rebasing {branch} from {old_base[:8]} onto {parent} at {parent_revision[:8]}")
    if not context.git_cmd.rebase(branch, onto=parent_revision, upstream=old_base):
        return RestackResult.CONFLICT, parent_revision

    store.set_parent_revision(branch, parent_revision)
    return RestackResult.DONE, parent_revision


def restack_branches(branch_names: Sequence[str], context: Context,
                     original_branch: Optional[str] = None) -> None:
    """Restack each branch in order, stopping at the first conflict.

    Raises:
        RebaseConflictError: a rebase stopped on conflicts. Branches before it
            are restacked, the conflicted one is mid-rebase, later ones are
            untouched and recorded in the continuation.
    """
    git_cmd = context.git_cmd
    if original_branch is None:
        original_branch = git_cmd.current_branch()

    for index, branch in enumerate(branch_names):
        if context.store.is_trunk(branch):
            continue
        result, parent_revision = restack_branch(branch, context)
        parent = context.store.get_parent_precondition(branch)
        if result is RestackResult.CONFLICT:
            remaining = list(branch_names[index + 1:])
            save_continuation(git_cmd, Continuation(
                branch_name=branch,
                parent_revision=parent_revision,
                remaining_branches=remaining,
                original_branch=original_branch,
            ))
            raise RebaseConflictError(branch, remaining)
        if result is RestackResult.DONE:
            print(f"Restacked {branch} on {parent}.")
        else:
            print(f"{branch} does not need to be restacked on {parent}.")

    if original_branch is not None and git_cmd.current_branch() != original_branch:
        git_cmd.checkout(original_branch)


def restack_upstack(context: Context, branch: str) -> None:
    """Restack branch and everything stacked on it."""
    restack_branches(context.store.get_relative_stack(branch, Scope.UPSTACK_INCLUSIVE), context)


def continue_restack(context: Context) -> None:
    """Finish the rebase the last restack stopped on, then restack the rest."""
    git_cmd = context.git_cmd
    continuation = load_continuation(git_cmd)
    if continuation is None:
        raise PreconditionsFailedError("There is no restack to continue.")

    if git_cmd.rebase_in_progress() and not git_cmd.rebase_continue():
        raise RebaseConflictError(continuation.branch_name, continuation.remaining_branches)

    branch = continuation.branch_name
    if git_cmd.merge_base(continuation.parent_revision, branch) != continuation.parent_revision:
        clear_continuation(git_cmd)
        raise PreconditionsFailedError(
            f"{branch} is not based on {continuation.parent_revision[:8]}; was the rebase aborted? "
            f"Run `pystack restack` from {branch} to start over."
        )

    context.store.set_parent_revision(branch, continuation.parent_revision)
    clear_continuation(git_cmd)
    print(f"Restacked {branch} on {context.store.get_parent_precondition(branch)}.")
    restack_branches(continuation.remaining_branches, context,
                     original_branch=continuation.original_branch)
