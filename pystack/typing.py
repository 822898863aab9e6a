"""Common types used across the codebase."""

from typing import List, Optional, Protocol, NewType

# Identifiers handed back by git
RevisionId = NewType('RevisionId', str)


class GitInterface(Protocol):
    """What the core expects from the revision gateway."""

    def run_cmd(self, command: str) -> str:
        ...

    def git_dir(self) -> str:
        ...

    def resolve(self, ref: str) -> RevisionId:
        ...

    def list_remote_reference(self, ref: str, remote: str) -> Optional[RevisionId]:
        ...

    def branch_names(self) -> List[str]:
        ...

    def branch_exists(self, branch: str) -> bool:
        ...

    def current_branch(self) -> Optional[str]:
        ...

    def checkout(self, branch: str) -> None:
        ...

    def delete_branch(self, branch: str, force: bool = False) -> None:
        ...

    def merge_base(self, a: str, b: str) -> RevisionId:
        ...

    def rebase(self, branch: str, onto: str, upstream: str) -> bool:
        ...

    def rebase_in_progress(self) -> bool:
        ...

    def rebase_continue(self) -> bool:
        ...

    def stage_all(self) -> None:
        ...

    def has_staged_changes(self) -> bool:
        ...

    def commit(self, amend: bool = False, no_edit: bool = False,
               message: Optional[str] = None, patch: bool = False) -> RevisionId:
        ...

    def push_branch(self, branch: str, remote: str) -> None:
        ...

    def commit_subjects(self, base: str, head: str) -> List[str]:
        ...

    def commit_messages(self, base: str, head: str) -> List[str]:
        ...

    def read_ref_blob(self, ref: str) -> Optional[str]:
        ...

    def write_ref_blob(self, ref: str, content: str) -> None:
        ...

    def delete_ref(self, ref: str) -> None:
        ...

    def list_refs(self, prefix: str) -> List[str]:
        ...
