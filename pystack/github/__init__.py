"""GitHub side of submit: the review gateway over PyGithub.

GitHubClient only talks to the small protocols below, so tests can hand it
fake PyGithub objects and production code hands it the adapters from
``pystack.github.adapters``.
"""

import os
import logging
from pathlib import Path
from typing import Any, List, Optional, Protocol, runtime_checkable

import yaml

from ..config.models import PystackConfig
from ..errors import ExitFailedError
from ..util import ensure
from .types import PullRequest, SubmissionEntry

logger = logging.getLogger(__name__)

PR_ALREADY_EXISTS = "A pull request already exists"
GH_HOSTS_FILE = Path(".config") / "gh" / "hosts.yml"


@runtime_checkable
class GitHubUserProtocol(Protocol):
    @property
    def login(self) -> str:
        ...


@runtime_checkable
class GitHubRefProtocol(Protocol):
    """Base or head of a pull request."""
    @property
    def ref(self) -> str:
        ...

    @property
    def sha(self) -> str:
        ...


@runtime_checkable
class GitHubPullRequestProtocol(Protocol):
    """The slice of a PyGithub PullRequest that submit uses."""
    @property
    def number(self) -> int:
        ...

    @property
    def title(self) -> str:
        ...

    @property
    def draft(self) -> bool:
        ...

    @property
    def html_url(self) -> str:
        ...

    @property
    def base(self) -> GitHubRefProtocol:
        ...

    @property
    def head(self) -> GitHubRefProtocol:
        ...

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             base: Optional[str] = None) -> None:
        ...

    def create_review_request(self, reviewers: List[str]) -> None:
        ...

    def convert_to_draft(self) -> None:
        ...

    def mark_ready_for_review(self) -> None:
        ...


@runtime_checkable
class GitHubRepoProtocol(Protocol):
    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        ...

    def get_pulls(self, state: str = "open", head: str = "") -> List[GitHubPullRequestProtocol]:
        """Pull requests in state, restricted to head ("owner:branch") when given."""
        ...

    def create_pull(self, title: str, body: str, base: str, head: str,
                    draft: bool = False) -> GitHubPullRequestProtocol:
        ...


@runtime_checkable
class PyGithubProtocol(Protocol):
    """Entry point object, github.Github in production."""
    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        ...

    def get_user(self, login: Optional[str] = None) -> Optional[GitHubUserProtocol]:
        """The named user, or the authenticated one without a login."""
        ...


def find_github_token() -> Optional[str]:
    """GITHUB_TOKEN if set, else the token the gh CLI stored for github.com."""
    env_token = os.environ.get("GITHUB_TOKEN")
    if env_token:
        return env_token

    hosts_path = Path.home() / GH_HOSTS_FILE
    if not hosts_path.exists():
        return None
    try:
        with open(hosts_path) as f:
            hosts = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Could not read {hosts_path}: {e}")
        return None
    token = hosts.get("github.com", {}).get("oauth_token")
    return token if isinstance(token, str) else None


def _to_pull_request(gh_pr: GitHubPullRequestProtocol) -> PullRequest:
    return PullRequest(
        number=gh_pr.number,
        head=gh_pr.head.ref,
        base=gh_pr.base.ref,
        title=gh_pr.title,
        is_draft=bool(gh_pr.draft),
        url=gh_pr.html_url or "",
    )


class GitHubClient:
    """Review gateway: turns submission entries into GitHub calls."""
    def __init__(self, config: PystackConfig, github_client: PyGithubProtocol):
        """Initialize with config and GitHub client implementation (real or fake)."""
        self.config = config
        self.client = github_client
        self._repo: Optional[GitHubRepoProtocol] = None

    @property
    def repo(self) -> GitHubRepoProtocol:
        """Get GitHub repository."""
        if self._repo is None:
            owner = self.config.repo.github_repo_owner
            name = self.config.repo.github_repo_name
            if not owner or not name:
                raise ExitFailedError(
                    "GitHub repository unknown - set repo.github_repo_owner and repo.github_repo_name in .pystack.yaml"
                )
            self._repo = self._call(f"get repo {owner}/{name}", self.client.get_repo, f"{owner}/{name}")
        return self._repo

    def _call(self, what: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        """Run a GitHub call, turning library errors into ExitFailedError."""
        try:
            return fn(*args, **kwargs)
        except ExitFailedError:
            raise
        except Exception as e:
            raise ExitFailedError(f"GitHub call failed ({what}): {e}") from e

    def create(self, entry: SubmissionEntry) -> PullRequest:
        """Create a pull request for entry.head against entry.base."""
        title = entry.title or entry.head
        logger.info(f"> github create {entry.head} -> {entry.base} : {title}")
        try:
            gh_pr = self.repo.create_pull(
                title=title,
                body=entry.body or "",
                base=entry.base,
                head=entry.head,
                draft=bool(entry.draft),
            )
        except Exception as e:
            if PR_ALREADY_EXISTS not in str(e):
                raise ExitFailedError(f"GitHub call failed (create {entry.head}): {e}") from e
            logger.warning(f"PR already exists for branch {entry.head}, attempting to find it")
            existing = self.get_pull_request_for_branch(entry.head)
            if existing is None:
                raise ExitFailedError(f"GitHub reports a PR for {entry.head} but none could be found") from e
            logger.info(f"Found existing PR #{existing.number} for branch {entry.head}")
            return self.update(existing.number, base=entry.base, draft=entry.draft)

        if entry.reviewers:
            self.add_reviewers(gh_pr, entry.reviewers)
        return _to_pull_request(gh_pr)

    def update(self, number: int, base: Optional[str] = None, draft: Optional[bool] = None) -> PullRequest:
        """Bring an existing pull request's base and draft state in line."""
        logger.info(f"> github update #{number}")
        gh_pr = self._call(f"get #{number}", self.repo.get_pull, number)

        if base is not None and gh_pr.base.ref != base:
            logger.info(f"  Updating base from {gh_pr.base.ref} to {base}")
            self._call(f"edit #{number}", gh_pr.edit, base=base)

        if draft is True and not gh_pr.draft:
            logger.info(f"  Converting #{number} to draft")
            self._call(f"draft #{number}", gh_pr.convert_to_draft)
        elif draft is False and gh_pr.draft:
            logger.info(f"  Marking #{number} ready for review")
            self._call(f"publish #{number}", gh_pr.mark_ready_for_review)

        # Re-read so the result reflects what GitHub now has
        return _to_pull_request(self._call(f"get #{number}", self.repo.get_pull, number))

    def add_reviewers(self, gh_pr: GitHubPullRequestProtocol, logins: List[str]) -> None:
        """Request reviews, filtering out the authenticated user."""
        logger.info(f"> github add reviewers #{gh_pr.number} : {logins}")
        current_user = ensure(self._call("get user", self.client.get_user), "authenticated user").login.lower()
        reviewers = [login for login in logins if login.lower() != current_user]
        if not reviewers:
            logger.debug(f"No valid reviewers for PR #{gh_pr.number} after filtering self-review")
            return
        self._call(f"request reviews #{gh_pr.number}", gh_pr.create_review_request, reviewers=reviewers)

    def get_pull_request_for_branch(self, branch_name: str) -> Optional[PullRequest]:
        """Find the open pull request whose head is branch_name."""
        owner = self.config.repo.github_repo_owner
        pulls = self._call(f"list PRs for {branch_name}", self.repo.get_pulls, state="open", head=f"{owner}:{branch_name}")
        for gh_pr in pulls:
            if gh_pr.head.ref == branch_name:
                return _to_pull_request(gh_pr)
        return None
