"""Git interfaces and implementation."""

import os
import shlex
import subprocess
import tempfile
import logging
from typing import Any, List, Optional
import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..config.models import PystackConfig
from ..errors import ExitFailedError, NoBranchError
from ..typing import GitInterface, RevisionId

# Get module logger
logger = logging.getLogger(__name__)

__all__ = ['GitInterface', 'RealGit']


class RealGit:
    """Real Git implementation backed by GitPython."""
    def __init__(self, config: PystackConfig, repo_dir: Optional[str] = None):
        """Initialize with config and, optionally, the repository directory."""
        self.config: PystackConfig = config
        self.repo_dir = repo_dir
        self._repo: Optional[git.Repo] = None

    @property
    def repo(self) -> git.Repo:
        if self._repo is None:
            try:
                self._repo = git.Repo(self.repo_dir or os.getcwd(), search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError):
                raise ExitFailedError("Not in a git repository")
        return self._repo

    def _log(self, cmd_str: str) -> None:
        if self.config.user.log_git_commands:
            logger.info(f"> git {cmd_str}")
        else:
            logger.debug(f"> git {cmd_str}")

    def _git(self, command: str, *args: str, **kwargs: Any) -> str:
        """Run a git subcommand through GitPython, raising GitCommandError on failure."""
        self._log(" ".join([command, *args]))
        method = getattr(self.repo.git, command.replace('-', '_'))
        result = method(*args, **kwargs)
        return result if isinstance(result, str) else str(result)

    def run_cmd(self, command: str) -> str:
        """Run git command given as a single string."""
        cmd_parts = shlex.split(command.strip())
        try:
            return self._git(cmd_parts[0], *cmd_parts[1:])
        except GitCommandError as e:
            raise ExitFailedError(f"Git command failed: {e}")

    def git_dir(self) -> str:
        try:
            return self._git("rev-parse", "--absolute-git-dir").strip()
        except GitCommandError as e:
            raise ExitFailedError(f"Failed to locate the git directory: {e}")

    def working_tree_dir(self) -> str:
        return str(self.repo.working_tree_dir)

    def resolve(self, ref: str) -> RevisionId:
        """Resolve a reference to a commit id."""
        try:
            return RevisionId(self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}").strip())
        except GitCommandError:
            raise NoBranchError(ref)

    def list_remote_reference(self, ref: str, remote: str) -> Optional[RevisionId]:
        """Get the revision a branch points at on the remote, if it exists there."""
        try:
            output = self._git("ls-remote", remote, f"refs/heads/{ref}")
        except GitCommandError as e:
            raise ExitFailedError(f"Failed to list {ref} on {remote}: {e}")
        sha = output.split()[0] if output.strip() else ""
        return RevisionId(sha) if sha else None

    def branch_names(self) -> List[str]:
        try:
            output = self._git("for-each-ref", "--format=%(refname:short)", "refs/heads/")
        except GitCommandError as e:
            raise ExitFailedError(f"Failed to list branches: {e}")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def branch_exists(self, branch: str) -> bool:
        try:
            self._git("show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
            return True
        except GitCommandError:
            return False

    def current_branch(self) -> Optional[str]:
        """Name of the checked out branch, None when HEAD is detached."""
        try:
            name = self._git("symbolic-ref", "--short", "-q", "HEAD").strip()
        except GitCommandError:
            return None
        return name or None

    def checkout(self, branch: str) -> None:
        self.run_cmd(f"checkout -q {shlex.quote(branch)}")

    def delete_branch(self, branch: str, force: bool = False) -> None:
        self.run_cmd(f"branch {'-D' if force else '-d'} {shlex.quote(branch)}")

    def merge_base(self, a: str, b: str) -> RevisionId:
        return RevisionId(self.run_cmd(f"merge-base {shlex.quote(a)} {shlex.quote(b)}").strip())

    def rebase(self, branch: str, onto: str, upstream: str) -> bool:
        """Rebase the commits of branch after upstream onto onto.

        Returns False when the rebase stopped on conflicts; the repository is
        left mid-rebase for the user to resolve.
        """
        try:
            self._git("rebase", "--onto", onto, upstream, branch)
            return True
        except GitCommandError as e:
            if self.rebase_in_progress():
                logger.debug(f"Rebase of {branch} stopped on conflicts: {e}")
                return False
            raise ExitFailedError(f"Failed to rebase {branch}: {e}")

    def rebase_in_progress(self) -> bool:
        git_dir = self.git_dir()
        return any(os.path.isdir(os.path.join(git_dir, d)) for d in ("rebase-merge", "rebase-apply"))

    def rebase_continue(self) -> bool:
        """Continue a stopped rebase without opening an editor. False on a new conflict."""
        try:
            self._git("rebase", "--continue", env={**os.environ, "GIT_EDITOR": "true"})
            return True
        except GitCommandError as e:
            if self.rebase_in_progress():
                logger.debug(f"Rebase stopped on conflicts again: {e}")
                return False
            raise ExitFailedError(f"Failed to continue rebase: {e}")

    def stage_all(self) -> None:
        self.run_cmd("add --all")

    def has_staged_changes(self) -> bool:
        return bool(self.run_cmd("diff --cached --name-only").strip())

    def commit(self, amend: bool = False, no_edit: bool = False,
               message: Optional[str] = None, patch: bool = False) -> RevisionId:
        """Create or amend a commit and return the new HEAD revision."""
        args: List[str] = ["commit"]
        if amend:
            args.append("--amend")
        if no_edit:
            args.append("--no-edit")
        if message is not None:
            args.extend(["-m", message])
        if patch:
            args.append("--patch")

        if patch or (message is None and not no_edit):
            # Needs the terminal for the editor or the hunk selection
            self._log(" ".join(args))
            result = subprocess.run(["git", *args], cwd=self.working_tree_dir())
            if result.returncode != 0:
                raise ExitFailedError(f"git {' '.join(args)} exited with {result.returncode}")
        else:
            try:
                self._git(*args)
            except GitCommandError as e:
                raise ExitFailedError(f"Failed to commit: {e}")
        return self.resolve("HEAD")

    def push_branch(self, branch: str, remote: str) -> None:
        self.run_cmd(f"push --force-with-lease {shlex.quote(remote)} {shlex.quote(branch)}")

    def commit_subjects(self, base: str, head: str) -> List[str]:
        """Subjects of commits in base..head, oldest first."""
        output = self.run_cmd(f"log --reverse --format=%s {shlex.quote(base)}..{shlex.quote(head)}")
        return [line for line in output.splitlines() if line.strip()]

    def commit_messages(self, base: str, head: str) -> List[str]:
        """Full messages of commits in base..head, oldest first."""
        try:
            output = self._git("log", "--reverse", "--format=%B%x00", f"{base}..{head}")
        except GitCommandError as e:
            raise ExitFailedError(f"Git command failed: {e}")
        return [m.strip() for m in output.split("\x00") if m.strip()]

    def read_ref_blob(self, ref: str) -> Optional[str]:
        """Contents of the blob a ref points to, None if the ref does not exist."""
        try:
            return self._git("cat-file", "-p", ref)
        except GitCommandError:
            return None

    def write_ref_blob(self, ref: str, content: str) -> None:
        """Store content as a blob and point ref at it."""
        fd, path = tempfile.mkstemp(prefix="pystack-")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            sha = self.run_cmd(f"hash-object -w {shlex.quote(path)}").strip()
        finally:
            os.unlink(path)
        self.run_cmd(f"update-ref {shlex.quote(ref)} {sha}")

    def delete_ref(self, ref: str) -> None:
        self.run_cmd(f"update-ref -d {shlex.quote(ref)}")

    def list_refs(self, prefix: str) -> List[str]:
        output = self.run_cmd(f"for-each-ref --format=%(refname) {shlex.quote(prefix)}")
        return [line.strip() for line in output.splitlines() if line.strip()]
