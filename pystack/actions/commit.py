"""Commit on the current branch and keep everything above it stacked."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..context import Context
from ..errors import NoStagedChangesError
from ..metadata import Scope
from ..restack import restack_branches

logger = logging.getLogger(__name__)

NO_EDIT_TIP = "In the future, you can skip editing the commit message with the `--no-edit` flag."


@dataclass
class CommitOptions:
    add_all: bool = False
    message: Optional[str] = None
    patch: bool = False
    no_edit: bool = False


def ensure_some_staged_changes_precondition(context: Context) -> None:
    if not context.git_cmd.has_staged_changes():
        raise NoStagedChangesError()


def commit_amend_action(opts: CommitOptions, context: Context) -> None:
    """Amend the tip of the current branch, then restack the branches above it."""
    current_branch = context.current_branch_precondition
    if opts.add_all:
        context.git_cmd.stage_all()

    if opts.no_edit:
        ensure_some_staged_changes_precondition(context)

    revision = context.git_cmd.commit(
        amend=True,
        no_edit=opts.no_edit,
        message=opts.message,
        patch=not opts.add_all and opts.patch,
    )
    logger.debug(f"Amended {current_branch}, now at {revision[:8]}")

    if not opts.no_edit and context.interactive:
        context.tip(NO_EDIT_TIP)

    restack_branches(context.store.get_relative_stack(current_branch, Scope.UPSTACK_EXCLUSIVE), context)


def commit_create_action(opts: CommitOptions, context: Context) -> None:
    """Add a commit to the current branch, then restack the branches above it."""
    current_branch = context.current_branch_precondition
    if opts.add_all:
        context.git_cmd.stage_all()

    ensure_some_staged_changes_precondition(context)
    revision = context.git_cmd.commit(
        message=opts.message,
        patch=not opts.add_all and opts.patch,
    )
    logger.debug(f"Committed on {current_branch}, now at {revision[:8]}")

    restack_branches(context.store.get_relative_stack(current_branch, Scope.UPSTACK_EXCLUSIVE), context)
