"""Branch metadata store.

Every tracked branch has a small JSON document stored as a blob under
``refs/branch-metadata/<branch>``. It records the parent branch, the parent
revision the branch was last built on, and whatever we know about the
branch's pull request. Keeping it in refs means it travels with the
repository and needs no files in the working tree.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set

from pydantic import BaseModel, ValidationError

from ..config.models import RepoConfig
from ..errors import (
    BadTrunkOperationError, NoBranchError, PreconditionsFailedError, UntrackedBranchError,
)
from ..typing import GitInterface, RevisionId

logger = logging.getLogger(__name__)

METADATA_REF_PREFIX = "refs/branch-metadata/"


class Scope(Enum):
    """Which part of a stack, relative to a branch, an operation touches."""
    UPSTACK_EXCLUSIVE = "upstack_exclusive"
    UPSTACK_INCLUSIVE = "upstack_inclusive"
    DOWNSTACK = "downstack"
    FULL_STACK = "full_stack"


class ReviewInfo(BaseModel):
    """What we last told (or meant to tell) GitHub about a branch."""
    number: Optional[int] = None
    base: Optional[str] = None
    is_draft: Optional[bool] = None
    title: Optional[str] = None
    body: Optional[str] = None
    fingerprint: Optional[str] = None
    url: Optional[str] = None


class BranchMetadata(BaseModel):
    parent_branch_name: Optional[str] = None
    parent_branch_revision: Optional[str] = None
    review_info: Optional[ReviewInfo] = None


class Branch:
    """A branch as seen through the store. The revision is looked up on first use."""

    def __init__(self, name: str, git_cmd: GitInterface,
                 parent_name: Optional[str] = None,
                 review_info: Optional[ReviewInfo] = None):
        self.name = name
        self.parent_name = parent_name
        self.review_info = review_info
        self._git_cmd = git_cmd
        self._revision: Optional[RevisionId] = None

    @property
    def revision(self) -> RevisionId:
        if self._revision is None:
            self._revision = self._git_cmd.resolve(self.name)
        return self._revision

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Branch) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Branch({self.name!r}, parent={self.parent_name!r})"


class BranchMetadataStore:
    """Reads and writes per-branch metadata, and answers parent/child questions."""

    def __init__(self, git_cmd: GitInterface, config: RepoConfig):
        self.git_cmd = git_cmd
        self.config = config
        self._metadata: Optional[Dict[str, BranchMetadata]] = None
        self._git_branches: Set[str] = set()

    @property
    def trunk(self) -> str:
        return self.config.trunk

    def _load(self) -> Dict[str, BranchMetadata]:
        if self._metadata is None:
            self._git_branches = set(self.git_cmd.branch_names())
            metadata: Dict[str, BranchMetadata] = {}
            for ref in self.git_cmd.list_refs(METADATA_REF_PREFIX):
                name = ref[len(METADATA_REF_PREFIX):]
                meta = self._read_ref(name)
                if meta is not None:
                    metadata[name] = meta
            self._metadata = metadata
        return self._metadata

    def _read_ref(self, branch: str) -> Optional[BranchMetadata]:
        raw = self.git_cmd.read_ref_blob(METADATA_REF_PREFIX + branch)
        if raw is None:
            return None
        try:
            return BranchMetadata.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable metadata for {branch}: {e}")
            return None

    def _write(self, branch: str, meta: BranchMetadata) -> None:
        self._load()[branch] = meta
        self.git_cmd.write_ref_blob(METADATA_REF_PREFIX + branch, meta.model_dump_json(exclude_none=True))

    def _forget(self, branch: str) -> None:
        metadata = self._load()
        if branch in metadata:
            del metadata[branch]
            self.git_cmd.delete_ref(METADATA_REF_PREFIX + branch)

    def read(self, branch: str) -> Optional[BranchMetadata]:
        return self._load().get(branch)

    def is_trunk(self, branch: str) -> bool:
        return branch == self.trunk

    def is_ignored(self, branch: str) -> bool:
        return branch in self.config.ignore_branches

    def is_tracked(self, branch: str) -> bool:
        """Trunk, or a live branch with a parent on record."""
        if self.is_trunk(branch):
            return True
        meta = self._load().get(branch)
        return meta is not None and meta.parent_branch_name is not None and branch in self._git_branches

    def branch_exists(self, branch: str) -> bool:
        self._load()
        return branch in self._git_branches

    def get_parent(self, branch: str) -> Optional[str]:
        meta = self._load().get(branch)
        if meta is None or self.is_trunk(branch):
            return None
        return meta.parent_branch_name

    def get_parent_precondition(self, branch: str) -> str:
        if self.is_trunk(branch):
            raise BadTrunkOperationError()
        parent = self.get_parent(branch)
        if parent is None:
            raise UntrackedBranchError(branch)
        return parent

    def get_children(self, branch: str) -> List[str]:
        """Tracked children of branch. Ignored branches start stacks of their own and are never children."""
        metadata = self._load()
        return sorted(
            name for name, meta in metadata.items()
            if meta.parent_branch_name == branch and name in self._git_branches
            and not self.is_trunk(name) and not self.is_ignored(name)
        )

    def all_branches(self) -> List[Branch]:
        """Every tracked branch that still exists, trunk included."""
        names = sorted(name for name in self._load() if self.is_tracked(name))
        if self.trunk in self._git_branches and self.trunk not in names:
            names.insert(0, self.trunk)
        return [self.get_branch(name) for name in names]

    def get_branch(self, branch: str) -> Branch:
        return Branch(branch, self.git_cmd, self.get_parent(branch), self.get_review_info(branch))

    def get_revision(self, branch: str) -> RevisionId:
        return self.git_cmd.resolve(branch)

    def branch_matches_remote(self, branch: str) -> bool:
        """True when the remote copy of the branch is at our local revision."""
        remote_revision = self.git_cmd.list_remote_reference(branch, self.config.remote)
        return remote_revision is not None and remote_revision == self.get_revision(branch)

    def track_branch(self, branch: str, parent: str) -> None:
        """Record parent as the parent of branch."""
        self._load()
        if not self.branch_exists(branch):
            raise NoBranchError(branch)
        if self.is_trunk(branch):
            raise BadTrunkOperationError()
        if not self.branch_exists(parent):
            raise NoBranchError(parent)
        if not (self.is_tracked(parent) or self.is_ignored(parent)):
            raise UntrackedBranchError(parent)
        if self._has_ancestor(parent, branch):
            raise PreconditionsFailedError(f"Cannot track {branch} on {parent}: {parent} is stacked on {branch}.")

        meta = self.read(branch) or BranchMetadata()
        meta.parent_branch_name = parent
        meta.parent_branch_revision = self.git_cmd.merge_base(parent, branch)
        self._write(branch, meta)
        logger.info(f"Tracking {branch} on {parent}")

    def _has_ancestor(self, branch: str, ancestor: str) -> bool:
        """True when ancestor is branch or on its chain of parents."""
        current: Optional[str] = branch
        seen: Set[str] = set()
        while current is not None and current not in seen:
            if current == ancestor:
                return True
            seen.add(current)
            current = self.get_parent(current)
        return False

    def untrack_branch(self, branch: str) -> None:
        """Stop tracking branch. Its children move onto its parent."""
        parent = self.get_parent_precondition(branch)
        self._reparent_children(branch, parent)
        self._forget(branch)

    def delete_branch(self, branch: str, force: bool = False) -> None:
        """Delete the branch and its metadata. Its children move onto its parent."""
        parent = self.get_parent_precondition(branch)
        if self.git_cmd.current_branch() == branch:
            raise PreconditionsFailedError(f"Cannot delete {branch} while it is checked out.")
        self.git_cmd.delete_branch(branch, force=force)
        self._reparent_children(branch, parent)
        self._forget(branch)
        self._git_branches.discard(branch)

    def _reparent_children(self, branch: str, new_parent: str) -> None:
        # ignored children hang off branch too and must not be left dangling
        for child, meta in list(self._load().items()):
            if meta.parent_branch_name != branch:
                continue
            meta.parent_branch_name = new_parent
            # parent_branch_revision still marks where the child's own commits start
            self._write(child, meta)

    def set_parent_revision(self, branch: str, revision: str) -> None:
        meta = self.read(branch)
        if meta is None:
            raise UntrackedBranchError(branch)
        meta.parent_branch_revision = revision
        self._write(branch, meta)

    def get_review_info(self, branch: str) -> Optional[ReviewInfo]:
        meta = self.read(branch)
        return meta.review_info if meta is not None else None

    def upsert_review_info(self, branch: str, **fields: Any) -> ReviewInfo:
        """Merge the given fields into the stored review info. None values are skipped."""
        meta = self.read(branch)
        if meta is None:
            raise UntrackedBranchError(branch)
        current = meta.review_info.model_dump() if meta.review_info else {}
        current.update({k: v for k, v in fields.items() if v is not None})
        meta.review_info = ReviewInfo.model_validate(current)
        self._write(branch, meta)
        return meta.review_info

    @contextmanager
    def review_info_transaction(self, branch: str) -> Iterator[Dict[str, Any]]:
        """Collect review info fields and store them however the block exits.

        Anything put into the yielded dict is persisted, even if the block
        raises, so work the user already did (typing a title) is not lost.
        """
        pending: Dict[str, Any] = {}
        try:
            yield pending
        finally:
            if any(v is not None for v in pending.values()):
                self.upsert_review_info(branch, **pending)

    def get_relative_stack(self, branch: str, scope: Scope) -> List[str]:
        """Branch names relative to branch, parents always before children."""
        if scope is Scope.UPSTACK_EXCLUSIVE:
            return self._descendants(branch)
        if scope is Scope.UPSTACK_INCLUSIVE:
            own = [] if self.is_trunk(branch) else [branch]
            return own + self._descendants(branch)
        if scope is Scope.DOWNSTACK:
            return self._downstack(branch)
        if scope is Scope.FULL_STACK:
            return self._downstack(branch) + self._descendants(branch)
        raise ValueError(f"Unknown scope {scope}")

    def _descendants(self, branch: str) -> List[str]:
        result: List[str] = []
        seen = {branch}
        pending = list(reversed(self.get_children(branch)))
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            result.append(current)
            pending.extend(reversed(self.get_children(current)))
        return result

    def _downstack(self, branch: str) -> List[str]:
        """branch and its ancestors down to (not including) trunk, bottom first."""
        result: List[str] = []
        current: Optional[str] = branch
        while current is not None and not self.is_trunk(current) and current not in result:
            result.append(current)
            parent = self.get_parent(current)
            if parent is None or self.is_ignored(parent):
                break
            current = parent
        return list(reversed(result))
