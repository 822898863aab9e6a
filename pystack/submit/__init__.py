"""Reconcile local branches with their pull requests.

Submitting happens in three steps:

1. classify every branch with calculate_pr_status, a pure function of what
   we stored at the last submission and what the branch looks like now;
2. optionally let the user veto branches, and gather title/body/reviewers
   for the ones that need a new pull request;
3. push each branch and create or update its pull request, recording what
   GitHub now has only after the call succeeded.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..context import Context
from ..errors import BadTrunkOperationError, ExitFailedError, PreconditionsFailedError, UntrackedBranchError
from ..github.types import PullRequest, SubmissionEntry
from ..metadata import Scope
from ..util import ensure

logger = logging.getLogger(__name__)


class PRStatus(Enum):
    NOOP = "NOOP"
    CREATE = "CREATE"
    RESTACK = "RESTACK"
    CHANGE = "CHANGE"
    DRAFT = "DRAFT"
    PUBLISH = "PUBLISH"


STATUS_LABELS: Dict[PRStatus, str] = {
    PRStatus.NOOP: "(No-op)",
    PRStatus.CREATE: "(Create)",
    PRStatus.RESTACK: "(New parent)",
    PRStatus.CHANGE: "(Update)",
    PRStatus.DRAFT: "(Mark as draft)",
    PRStatus.PUBLISH: "(Ready for review)",
}


@dataclass
class SubmitArgs:
    """Flags of a submit run."""
    edit_inline: bool = False
    draft: bool = False
    publish: bool = False
    update_only: bool = False
    dry_run: bool = False
    reviewers: bool = False
    select: bool = False


@dataclass
class PRAction:
    branch_name: str
    status: PRStatus
    pr_number: Optional[int] = None

    @property
    def update(self) -> bool:
        return self.pr_number is not None


def calculate_pr_status(has_number: bool, update_only: bool, base_matches: bool,
                        content_matches: bool, draft: bool, publish: bool,
                        stored_is_draft: Optional[bool]) -> PRStatus:
    """Decide what a branch's pull request needs.

    We only ever push base and content changes, plus draft/published
    transitions when asked for; title and body are left to GitHub once
    the PR exists.
    """
    if not has_number:
        return PRStatus.NOOP if update_only else PRStatus.CREATE
    if not base_matches:
        return PRStatus.RESTACK
    if not content_matches:
        return PRStatus.CHANGE
    if draft and stored_is_draft is not True:
        return PRStatus.DRAFT
    if publish and stored_is_draft is not False:
        return PRStatus.PUBLISH
    return PRStatus.NOOP


def get_pr_action(branch_name: str, args: SubmitArgs, context: Context) -> Optional[PRAction]:
    """Classify one branch, let the user veto it if selecting, and report it."""
    store = context.store
    # Branches reaching here were filtered to exclude trunk, so a parent exists
    parent_name = store.get_parent_precondition(branch_name)
    pr_info = store.get_review_info(branch_name)
    pr_number = pr_info.number if pr_info is not None else None

    base_matches = pr_info is not None and pr_info.base == parent_name
    content_matches = (
        pr_number is not None and base_matches and store.branch_matches_remote(branch_name)
    )
    calculated = calculate_pr_status(
        has_number=pr_number is not None,
        update_only=args.update_only,
        base_matches=base_matches,
        content_matches=content_matches,
        draft=args.draft,
        publish=args.publish,
        stored_is_draft=pr_info.is_draft if pr_info is not None else None,
    )

    status = calculated
    if args.select and calculated is not PRStatus.NOOP:
        if not context.prompter.confirm(f"Would you like to submit {branch_name}?", default=True):
            status = PRStatus.NOOP

    print(f"▸ {branch_name} {STATUS_LABELS[status]}")

    if args.dry_run or status is PRStatus.NOOP:
        return None
    return PRAction(branch_name, status, pr_number)


def get_pr_title(branch_name: str, args: SubmitArgs, context: Context) -> str:
    info = context.store.get_review_info(branch_name)
    if info is not None and info.title:
        return info.title

    parent_name = context.store.get_parent_precondition(branch_name)
    subjects = context.git_cmd.commit_subjects(parent_name, branch_name)
    default = subjects[0] if subjects else branch_name
    if args.edit_inline:
        return context.prompter.text("Title", default=default) or default
    return default


def default_pr_body(messages: List[str]) -> str:
    if not messages:
        return ""
    if len(messages) == 1:
        # Subject becomes the title; the rest of the message is the body
        parts = messages[0].split("\n", 1)
        return parts[1].strip() if len(parts) > 1 else ""
    return "\n\n".join(messages)


def get_pr_body(branch_name: str, args: SubmitArgs, context: Context) -> str:
    info = context.store.get_review_info(branch_name)
    if info is not None and info.body is not None:
        return info.body

    parent_name = context.store.get_parent_precondition(branch_name)
    default = default_pr_body(context.git_cmd.commit_messages(parent_name, branch_name))
    if args.edit_inline:
        return context.prompter.edit(default)
    return default


def get_pr_draft_status(args: SubmitArgs, context: Context) -> bool:
    if args.publish:
        return False
    if args.draft or not context.interactive:
        return True
    return context.prompter.confirm("Create as draft?", default=False)


def get_pr_creation_info(branch_name: str, args: SubmitArgs, context: Context) -> Dict[str, Any]:
    """Gather title, body, reviewers and draft state for a new pull request.

    Title and body are written to the metadata store as soon as they are
    known, whatever happens afterwards, so a failed submit can be retried
    without typing them again.
    """
    if args.edit_inline:
        parent_name = context.store.get_parent_precondition(branch_name)
        print(f"\nEnter info for new pull request for {branch_name} ▸ {parent_name}:")

    with context.store.review_info_transaction(branch_name) as submit_info:
        submit_info['title'] = get_pr_title(branch_name, args, context)
        submit_info['body'] = get_pr_body(branch_name, args, context)

    reviewers = context.prompter.reviewers() if args.reviewers else []

    return {
        'title': submit_info['title'],
        'body': submit_info['body'],
        'reviewers': reviewers,
        'draft': get_pr_draft_status(args, context),
    }


def get_pr_info_for_branches(branch_names: Sequence[str], args: SubmitArgs,
                             context: Context) -> List[SubmissionEntry]:
    """Build the submission plan for branch_names, in order."""
    actions: List[PRAction] = []
    for branch_name in branch_names:
        action = get_pr_action(branch_name, args, context)
        if action is not None:
            actions.append(action)

    store = context.store
    entries: List[SubmissionEntry] = []
    for action in actions:
        parent_name = store.get_parent_precondition(action.branch_name)
        common: Dict[str, Any] = {
            'head': action.branch_name,
            'head_revision': store.get_revision(action.branch_name),
            'base': parent_name,
            'base_revision': store.get_revision(parent_name),
        }
        if action.update:
            entries.append(SubmissionEntry(
                action='update',
                pr_number=action.pr_number,
                draft=True if args.draft else False if args.publish else None,
                **common,
            ))
        else:
            entries.append(SubmissionEntry(
                action='create',
                **common,
                **get_pr_creation_info(action.branch_name, args, context),
            ))
    print()
    return entries


def branches_to_submit(context: Context, branch_names: Sequence[str] = (),
                       stack: bool = False) -> List[str]:
    """Resolve which branches a submit run covers, parents first, trunk excluded."""
    store = context.store
    if branch_names:
        names = list(dict.fromkeys(branch_names))
    else:
        current = context.current_branch_precondition
        if store.is_trunk(current) and not stack:
            raise BadTrunkOperationError()
        if store.is_trunk(current):
            names = store.get_relative_stack(current, Scope.UPSTACK_EXCLUSIVE)
        else:
            names = store.get_relative_stack(current, Scope.FULL_STACK if stack else Scope.DOWNSTACK)

    for name in names:
        if store.is_trunk(name):
            raise BadTrunkOperationError()
        if not store.is_tracked(name):
            raise UntrackedBranchError(name)

    # Parents before children; sorted() is stable so unrelated branches keep their order
    return sorted(names, key=lambda n: len(store.get_relative_stack(n, Scope.DOWNSTACK)))


def submit_branches(branch_names: Sequence[str], args: SubmitArgs, context: Context) -> List[PullRequest]:
    """Push branches and create or update their pull requests."""
    if args.draft and args.publish:
        raise PreconditionsFailedError("--draft and --publish cannot be used together.")
    if context.config.tool.pretend:
        args.dry_run = True

    plan = get_pr_info_for_branches(branch_names, args, context)
    if args.dry_run or not plan:
        if not args.dry_run:
            print("All pull requests are up to date.")
        return []

    if context.github is None:
        raise ExitFailedError("No GitHub client configured.")

    remote = context.config.repo.remote
    results: List[PullRequest] = []
    for entry in plan:
        context.git_cmd.push_branch(entry.head, remote)
        if entry.action == 'create':
            pr = context.github.create(entry)
        else:
            pr = context.github.update(ensure(entry.pr_number, "pull request number"), base=entry.base, draft=entry.draft)

        context.store.upsert_review_info(
            entry.head,
            number=pr.number,
            base=entry.base,
            is_draft=pr.is_draft,
            fingerprint=entry.head_revision,
            url=pr.url,
        )
        verb = "created" if entry.action == 'create' else "updated"
        print(f"{entry.head}: {pr.url or f'#{pr.number}'} ({verb})")
        results.append(pr)
    return results
