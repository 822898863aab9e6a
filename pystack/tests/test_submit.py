"""Tests for reconciling branches with pull requests."""

from typing import Optional

import pytest

from pystack.context import Context
from pystack.errors import (
    BadTrunkOperationError, ExitFailedError, PreconditionsFailedError, UntrackedBranchError,
)
from pystack.submit import (
    PRStatus, SubmitArgs, branches_to_submit, calculate_pr_status, default_pr_body,
    get_pr_info_for_branches, submit_branches,
)
from pystack.tests.fakes import FakeGit, FakeGithub, ScriptedPrompter, make_context


def stacked_context(git: FakeGit, github: FakeGithub,
                    prompter: Optional[ScriptedPrompter] = None, interactive: bool = False) -> Context:
    """main -> a -> b -> c, all tracked, b checked out."""
    context = make_context(git, github=github, prompter=prompter, interactive=interactive)
    for name, parent in [("a", "main"), ("b", "a"), ("c", "b")]:
        context.store.track_branch(name, parent)
    git.checkout("b")
    return context


@pytest.fixture
def github() -> FakeGithub:
    return FakeGithub()


class TestCalculatePRStatus:
    """Tests for the pure status classification."""

    @pytest.mark.parametrize("has_number,update_only,base,content,draft,publish,stored,expected", [
        (False, False, False, False, False, False, None, PRStatus.CREATE),
        (False, True, False, False, False, False, None, PRStatus.NOOP),
        (False, False, True, True, True, False, None, PRStatus.CREATE),
        (True, False, False, False, False, False, False, PRStatus.RESTACK),
        (True, True, False, True, True, False, False, PRStatus.RESTACK),
        (True, False, True, False, False, False, False, PRStatus.CHANGE),
        (True, False, True, False, True, False, False, PRStatus.CHANGE),
        (True, False, True, True, True, False, False, PRStatus.DRAFT),
        (True, False, True, True, True, False, None, PRStatus.DRAFT),
        (True, False, True, True, True, False, True, PRStatus.NOOP),
        (True, False, True, True, False, True, True, PRStatus.PUBLISH),
        (True, False, True, True, False, True, None, PRStatus.PUBLISH),
        (True, False, True, True, False, True, False, PRStatus.NOOP),
        (True, False, True, True, False, False, True, PRStatus.NOOP),
        (True, True, True, True, False, False, False, PRStatus.NOOP),
    ])
    def test_status_table(self, has_number: bool, update_only: bool, base: bool, content: bool,
                          draft: bool, publish: bool, stored: Optional[bool], expected: PRStatus) -> None:
        """Test every row of the reconciliation table."""
        assert calculate_pr_status(
            has_number=has_number,
            update_only=update_only,
            base_matches=base,
            content_matches=content,
            draft=draft,
            publish=publish,
            stored_is_draft=stored,
        ) is expected


class TestBranchesToSubmit:
    """Tests for choosing which branches a submit covers."""

    def test_downstack_by_default(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that the current branch and its ancestors are submitted."""
        context = stacked_context(chain_git, github)
        assert branches_to_submit(context) == ["a", "b"]

    def test_whole_stack(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that --stack adds the branches above."""
        context = stacked_context(chain_git, github)
        assert branches_to_submit(context, stack=True) == ["a", "b", "c"]

    def test_explicit_branches_are_sorted_parents_first(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that named branches are submitted parents first."""
        context = stacked_context(chain_git, github)
        assert branches_to_submit(context, ["c", "a", "c"]) == ["a", "c"]

    def test_trunk(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that trunk alone cannot be submitted but its stack can."""
        context = stacked_context(chain_git, github)
        chain_git.checkout("main")
        with pytest.raises(BadTrunkOperationError):
            branches_to_submit(context)
        assert branches_to_submit(context, stack=True) == ["a", "b", "c"]
        with pytest.raises(BadTrunkOperationError):
            branches_to_submit(context, ["main"])

    def test_untracked(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that untracked branches are refused."""
        chain_git.create_branch("loose", "main")
        context = stacked_context(chain_git, github)
        with pytest.raises(UntrackedBranchError):
            branches_to_submit(context, ["loose"])


class TestSubmit:
    """Tests for submit_branches against a fake GitHub."""

    def test_creates_pull_requests(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that new PRs are created against each branch's parent and recorded."""
        context = stacked_context(chain_git, github)

        results = submit_branches(["a", "b"], SubmitArgs(), context)

        assert [pr.number for pr in results] == [1, 2]
        assert chain_git.pushes == ["a", "b"]
        pulls = github.repository.pulls
        assert (pulls[1].head.ref, pulls[1].base.ref) == ("a", "main")
        assert (pulls[2].head.ref, pulls[2].base.ref) == ("b", "a")
        assert pulls[1].title == "a commit 1"
        assert pulls[1].body == "Body of a commit 1"
        # Non-interactive runs create drafts
        assert pulls[1].draft is True

        info = context.store.get_review_info("b")
        assert info is not None
        assert info.number == 2
        assert info.base == "a"
        assert info.is_draft is True
        assert info.fingerprint == chain_git.branches["b"]
        assert info.url == "https://github.com/owner/repo/pull/2"

    def test_second_submit_is_noop(self, chain_git: FakeGit, github: FakeGithub,
                                   capsys: pytest.CaptureFixture) -> None:
        """Test that nothing is pushed when branches and PRs already match."""
        context = stacked_context(chain_git, github)
        submit_branches(["a", "b"], SubmitArgs(), context)
        capsys.readouterr()

        assert submit_branches(["a", "b"], SubmitArgs(), context) == []

        out = capsys.readouterr().out
        assert "▸ a (No-op)" in out
        assert "All pull requests are up to date." in out
        assert chain_git.pushes == ["a", "b"]

    def test_changed_branch_is_updated(self, chain_git: FakeGit, github: FakeGithub,
                                       capsys: pytest.CaptureFixture) -> None:
        """Test that a branch that moved gets pushed and its PR updated."""
        context = stacked_context(chain_git, github)
        submit_branches(["a", "b"], SubmitArgs(), context)
        chain_git.add_commit("b", "more work")
        capsys.readouterr()

        results = submit_branches(["a", "b"], SubmitArgs(), context)

        assert "▸ b (Update)" in capsys.readouterr().out
        assert [pr.number for pr in results] == [2]
        assert chain_git.pushes[-1] == "b"
        assert len(github.repository.pulls) == 2

    def test_new_parent_changes_base(self, chain_git: FakeGit, github: FakeGithub,
                                     capsys: pytest.CaptureFixture) -> None:
        """Test that a branch whose parent changed gets its PR base moved."""
        context = stacked_context(chain_git, github)
        submit_branches(["a", "b", "c"], SubmitArgs(), context)
        chain_git.checkout("main")
        context.store.untrack_branch("b")
        capsys.readouterr()

        submit_branches(["a", "c"], SubmitArgs(), context)

        assert "▸ c (New parent)" in capsys.readouterr().out
        assert github.repository.pulls[3].base.ref == "a"
        info = context.store.get_review_info("c")
        assert info is not None and info.base == "a"

    def test_publish_and_draft(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that --publish and --draft flip the draft state of existing PRs."""
        context = stacked_context(chain_git, github)
        submit_branches(["a"], SubmitArgs(), context)

        submit_branches(["a"], SubmitArgs(publish=True), context)
        assert github.repository.pulls[1].draft is False
        info = context.store.get_review_info("a")
        assert info is not None and info.is_draft is False

        submit_branches(["a"], SubmitArgs(draft=True), context)
        assert github.repository.pulls[1].draft is True

    def test_draft_and_publish_conflict(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that --draft and --publish cannot be combined."""
        context = stacked_context(chain_git, github)
        with pytest.raises(PreconditionsFailedError):
            submit_branches(["a"], SubmitArgs(draft=True, publish=True), context)
        assert chain_git.pushes == []

    def test_update_only_skips_new_branches(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that --update-only never creates PRs."""
        context = stacked_context(chain_git, github)
        assert submit_branches(["a", "b"], SubmitArgs(update_only=True), context) == []
        assert github.repository.pulls == {}

    def test_dry_run(self, chain_git: FakeGit, github: FakeGithub, capsys: pytest.CaptureFixture) -> None:
        """Test that a dry run reports without pushing or calling GitHub."""
        context = stacked_context(chain_git, github)

        assert submit_branches(["a", "b"], SubmitArgs(dry_run=True), context) == []

        out = capsys.readouterr().out
        assert "▸ a (Create)" in out
        assert "▸ b (Create)" in out
        assert chain_git.pushes == []
        assert github.repository.pulls == {}

    def test_pretend_is_dry_run(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that the pretend tool setting never pushes."""
        context = stacked_context(chain_git, github)
        context.config.tool.pretend = True
        submit_branches(["a"], SubmitArgs(), context)
        assert chain_git.pushes == []

    def test_select_declined(self, chain_git: FakeGit, github: FakeGithub,
                             capsys: pytest.CaptureFixture) -> None:
        """Test that a branch the user declines is reported as a no-op and skipped."""
        prompter = ScriptedPrompter(confirms=[False, True])
        context = stacked_context(chain_git, github, prompter=prompter)

        submit_branches(["a", "b"], SubmitArgs(select=True), context)

        out = capsys.readouterr().out
        assert "▸ a (No-op)" in out
        assert "▸ b (Create)" in out
        assert chain_git.pushes == ["b"]
        assert prompter.asked[:2] == ["Would you like to submit a?", "Would you like to submit b?"]

    def test_reviewers_requested(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that prompted reviewers are requested on new PRs, without the author."""
        prompter = ScriptedPrompter(reviewers=["alice", "me"])
        context = stacked_context(chain_git, github, prompter=prompter)

        submit_branches(["a"], SubmitArgs(reviewers=True), context)

        assert github.repository.pulls[1].reviewers == ["alice"]

    def test_interactive_draft_question(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that interactive runs ask whether to create a draft."""
        prompter = ScriptedPrompter(confirms=[False])
        context = stacked_context(chain_git, github, prompter=prompter, interactive=True)

        submit_branches(["a"], SubmitArgs(), context)

        assert prompter.asked == ["Create as draft?"]
        assert github.repository.pulls[1].draft is False


class TestCreationInfoSurvivesFailures:
    """Tests that typed titles and bodies are kept when a submit fails."""

    def test_failed_create_keeps_title_and_body(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that a GitHub failure leaves the edited title and body stored."""
        prompter = ScriptedPrompter(texts=["My title"], edits=["My body"])
        context = stacked_context(chain_git, github, prompter=prompter)
        github.repository.failing_heads.add("a")

        with pytest.raises(ExitFailedError):
            submit_branches(["a"], SubmitArgs(edit_inline=True), context)

        info = context.store.get_review_info("a")
        assert info is not None
        assert (info.title, info.body, info.number) == ("My title", "My body", None)

        # The retry reuses what was typed without asking again
        github.repository.failing_heads.clear()
        retry_prompter = ScriptedPrompter()
        context.prompter = retry_prompter
        submit_branches(["a"], SubmitArgs(edit_inline=True), context)
        assert github.repository.pulls[1].title == "My title"
        assert github.repository.pulls[1].body == "My body"
        assert "Title" not in retry_prompter.asked

    def test_interrupted_prompt_keeps_title(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that a title typed before an interrupt is stored."""
        prompter = ScriptedPrompter(texts=["Kept"], edits=[KeyboardInterrupt()])
        context = stacked_context(chain_git, github, prompter=prompter)

        with pytest.raises(KeyboardInterrupt):
            submit_branches(["a"], SubmitArgs(edit_inline=True), context)

        info = context.store.get_review_info("a")
        assert info is not None and info.title == "Kept"
        assert chain_git.pushes == []


class TestPlan:
    """Tests for the submission plan."""

    @pytest.mark.parametrize("args,expected", [
        (SubmitArgs(), None),
        (SubmitArgs(draft=True), True),
        (SubmitArgs(publish=True), False),
    ])
    def test_update_entry_draft_state(self, chain_git: FakeGit, github: FakeGithub,
                                      args: SubmitArgs, expected: Optional[bool]) -> None:
        """Test that update entries only carry a draft state when one was asked for."""
        context = stacked_context(chain_git, github)
        context.store.upsert_review_info("a", number=7, base="main", is_draft=None)

        entries = get_pr_info_for_branches(["a"], args, context)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.action == 'update'
        assert entry.pr_number == 7
        assert entry.draft is expected
        assert entry.head_revision == chain_git.branches["a"]
        assert entry.base_revision == chain_git.branches["main"]

    def test_create_entry(self, chain_git: FakeGit, github: FakeGithub) -> None:
        """Test that create entries carry title, body and draft state."""
        context = stacked_context(chain_git, github)

        entries = get_pr_info_for_branches(["b"], SubmitArgs(publish=True), context)

        entry = entries[0]
        assert (entry.action, entry.head, entry.base) == ('create', "b", "a")
        assert entry.title == "b commit 1"
        assert entry.draft is False


class TestDefaultBody:
    """Tests for default_pr_body."""

    def test_single_commit_drops_subject(self) -> None:
        assert default_pr_body(["Subject\n\nLine one\nLine two"]) == "Line one\nLine two"

    def test_subject_only(self) -> None:
        assert default_pr_body(["Subject"]) == ""

    def test_several_commits_are_joined(self) -> None:
        assert default_pr_body(["One", "Two\n\nBody"]) == "One\n\nTwo\n\nBody"

    def test_no_commits(self) -> None:
        assert default_pr_body([]) == ""
