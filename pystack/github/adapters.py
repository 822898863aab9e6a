"""Thin wrappers that make PyGithub objects satisfy the protocols in pystack.github."""

import logging
from typing import Any, List, Optional, Union

from github import Github
from github.AuthenticatedUser import AuthenticatedUser
from github.GithubObject import NotSet
from github.NamedUser import NamedUser
from github.PullRequest import PullRequest as PyGithubPullRequest
from github.Repository import Repository

from . import GitHubPullRequestProtocol, GitHubRefProtocol, GitHubRepoProtocol, GitHubUserProtocol

logger = logging.getLogger(__name__)


def _or_not_set(value: Optional[Any]) -> Any:
    # PyGithub only sends fields that are not NotSet
    return NotSet if value is None else value


class PyGithubUserAdapter:
    def __init__(self, user: Union[NamedUser, AuthenticatedUser]) -> None:
        self._user = user

    @property
    def login(self) -> str:
        return self._user.login


class PyGithubPullRequestAdapter:
    """A PyGithub PullRequest; base and head refs are passed through as they are."""

    def __init__(self, pr: PyGithubPullRequest) -> None:
        self._pr = pr

    @property
    def number(self) -> int:
        return self._pr.number

    @property
    def title(self) -> str:
        return self._pr.title

    @property
    def draft(self) -> bool:
        return bool(self._pr.draft)

    @property
    def html_url(self) -> str:
        return self._pr.html_url

    @property
    def base(self) -> GitHubRefProtocol:
        return self._pr.base

    @property
    def head(self) -> GitHubRefProtocol:
        return self._pr.head

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             base: Optional[str] = None) -> None:
        self._pr.edit(title=_or_not_set(title), body=_or_not_set(body), base=_or_not_set(base))

    def create_review_request(self, reviewers: List[str]) -> None:
        self._pr.create_review_request(reviewers=reviewers)

    def convert_to_draft(self) -> None:
        # GraphQL mutation under the hood; needs PyGithub >= 2.3
        self._pr.convert_to_draft()

    def mark_ready_for_review(self) -> None:
        self._pr.mark_ready_for_review()


class PyGithubRepoAdapter:
    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        return PyGithubPullRequestAdapter(self._repo.get_pull(number))

    def get_pulls(self, state: str = "open", head: str = "") -> List[GitHubPullRequestProtocol]:
        pulls = self._repo.get_pulls(state=state, head=head or NotSet)
        return [PyGithubPullRequestAdapter(pr) for pr in pulls]

    def create_pull(self, title: str, body: str, base: str, head: str,
                    draft: bool = False) -> GitHubPullRequestProtocol:
        logger.debug(f"Creating PR {head} -> {base} (draft={draft})")
        return PyGithubPullRequestAdapter(
            self._repo.create_pull(title=title, body=body, base=base, head=head, draft=draft)
        )


class PyGithubAdapter:
    """Wraps github.Github."""

    def __init__(self, github: Github) -> None:
        self._github = github

    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        return PyGithubRepoAdapter(self._github.get_repo(full_name_or_id))

    def get_user(self, login: Optional[str] = None) -> Optional[GitHubUserProtocol]:
        user = self._github.get_user() if login is None else self._github.get_user(login)
        return PyGithubUserAdapter(user) if user else None
