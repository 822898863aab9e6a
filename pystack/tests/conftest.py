"""Shared fixtures for the unit tests."""

import pytest

from pystack.tests.fakes import FakeGit


@pytest.fixture
def git(tmp_path) -> FakeGit:
    """An in-memory repository whose git dir is a real temporary directory."""
    return FakeGit(str(tmp_path))


@pytest.fixture
def chain_git(git: FakeGit) -> FakeGit:
    """main -> a -> b -> c, nothing tracked yet."""
    git.create_branch("a", "main")
    git.create_branch("b", "a")
    git.create_branch("c", "b")
    return git
