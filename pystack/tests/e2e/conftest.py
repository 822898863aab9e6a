"""Fixtures for tests against real git repositories."""

import os
import subprocess
import logging
from pathlib import Path
from typing import Callable

import pytest

from pystack.git import RealGit
from pystack.tests.fakes import make_config

logger = logging.getLogger(__name__)

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


def run_git(repo: Path, *args: str) -> str:
    """Run git in repo and return its stdout."""
    logger.debug(f"Running git {' '.join(args)} in {repo}")
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True,
        env={**os.environ, **GIT_ENV},
    )
    return result.stdout.strip()


@pytest.fixture
def repo_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A fresh repository on main with one commit and an origin remote URL."""
    for key, value in GIT_ENV.items():
        monkeypatch.setenv(key, value)
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(repo, "init", "-q")
    run_git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(repo, "config", "user.name", "Test User")
    run_git(repo, "config", "user.email", "test@example.com")
    run_git(repo, "config", "commit.gpgsign", "false")
    run_git(repo, "remote", "add", "origin", "git@github.com:owner/repo.git")
    (repo / "README.md").write_text("readme\n")
    run_git(repo, "add", "README.md")
    run_git(repo, "commit", "-q", "-m", "Initial commit")
    return repo


@pytest.fixture
def real_git(repo_dir: Path) -> RealGit:
    return RealGit(make_config(), str(repo_dir))


@pytest.fixture
def commit_file(repo_dir: Path) -> Callable[[str, str, str, str], str]:
    """Check out branch (creating it from base if needed), commit a file, return the new revision."""
    def commit(branch: str, filename: str, content: str, base: str = "main") -> str:
        existing = run_git(repo_dir, "branch", "--list", branch)
        if existing:
            run_git(repo_dir, "checkout", "-q", branch)
        else:
            run_git(repo_dir, "checkout", "-q", "-b", branch, base)
        (repo_dir / filename).write_text(content)
        run_git(repo_dir, "add", filename)
        run_git(repo_dir, "commit", "-q", "-m", f"Change {filename} on {branch}\n\nDetails for {filename}.")
        return run_git(repo_dir, "rev-parse", "HEAD")
    return commit
