"""CLI entry point."""

import functools
import os
import sys
import click
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from click import Context as ClickContext

from ...config import Config
from ...config import default_config
from ...config.config_parser import parse_config
from ...context import Context
from ...errors import (
    ExitFailedError, KilledError, PystackError, RebaseConflictError, UntrackedBranchError,
)
from ...git import RealGit
from ...github import GitHubClient
from ...lock import RepositoryLock
from ...actions.commit import CommitOptions, commit_amend_action, commit_create_action
from ...prompts import ClickPrompter, NonInteractivePrompter, Prompter
from ...restack import continue_restack, restack_upstack
from ...stack import StackBuilder
from ...submit import SubmitArgs, branches_to_submit, submit_branches
from ... import pretty

# Get module logger
logger = logging.getLogger(__name__)

def check(err: Exception) -> None:
    """Log an error and exit."""
    logger.error(f"{err}")
    sys.exit(1)

class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: ClickContext, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases.

        An alias may name a subcommand path such as "commit amend".
        """
        path = self.aliases.get(cmd_name, cmd_name).split()
        command = super().get_command(ctx, path[0])
        for name in path[1:]:
            if not isinstance(command, click.Group):
                return None
            command = command.get_command(ctx, name)
        return command

@click.group(cls=AliasedGroup)
@click.pass_context
def cli(ctx: ClickContext) -> None:
    """pystack - stacked branches and their pull requests on GitHub."""
    ctx.obj = {}

def common_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options every command accepts."""
    @click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
                  help='Run as if pystack was started in DIRECTORY instead of the current working directory')
    @click.option('-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
    @click.option('--no-interactive', is_flag=True, help="Never prompt; use defaults instead")
    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return f(*args, **kwargs)
    return wrapper

def setup_git(directory: Optional[str] = None) -> Tuple[Config, RealGit]:
    """Setup Git command and config."""
    if directory:
        os.chdir(directory)

    git_cmd = RealGit(default_config())
    cfg = parse_config(git_cmd, git_cmd.working_tree_dir())
    config = Config(cfg)
    return config, RealGit(config)

def create_github_client(config: Config) -> GitHubClient:
    """GitHub client backed by PyGithub."""
    from ...github import find_github_token
    from ...github.adapters import PyGithubAdapter
    from github import Auth, Github

    token = find_github_token()
    if not token:
        raise ExitFailedError("No GitHub token found. Try one of:\n1. Set GITHUB_TOKEN env var\n2. Log in with 'gh auth login'")
    return GitHubClient(config, PyGithubAdapter(Github(auth=Auth.Token(token))))

def run_action(directory: Optional[str], verbose: int, no_interactive: bool,
               action: Callable[[Context], None], needs_github: bool = False) -> None:
    """Build a context, take the repository lock and run action, mapping failures to exit codes."""
    from ... import setup_logging
    setup_logging(verbose)

    try:
        config, git_cmd = setup_git(directory)
        interactive = config.user.interactive and not no_interactive and sys.stdin.isatty()
        prompter: Prompter = ClickPrompter() if interactive else NonInteractivePrompter()
        # pretend runs never talk to GitHub
        github = create_github_client(config) if needs_github and not config.tool.pretend else None
        context = Context.create(config, git_cmd, prompter=prompter, interactive=interactive, github=github)
        with RepositoryLock(git_cmd.git_dir()):
            try:
                action(context)
            except (KeyboardInterrupt, click.Abort):
                raise KilledError()
    except RebaseConflictError as e:
        print(f"\n{e}")
        print("Resolve the conflicts, stage the files with `git add`, then run `pystack continue`.")
        if e.remaining:
            print(f"Still to restack afterwards: {', '.join(e.remaining)}")
        sys.exit(1)
    except PystackError as e:
        check(e)

@cli.command(name="track", help="Start tracking a branch on top of a parent branch")
@click.argument('branch')
@click.option('--parent', '-p', required=True, help="Branch this branch is stacked on")
@common_options
def track(branch: str, parent: str, directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Track command."""
    def action(context: Context) -> None:
        context.store.track_branch(branch, parent)
        print(f"Tracked {branch} on {parent}.")
    run_action(directory, verbose, no_interactive, action)

@cli.command(name="untrack", help="Stop tracking a branch; its children move onto its parent")
@click.argument('branch')
@common_options
def untrack(branch: str, directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Untrack command."""
    def action(context: Context) -> None:
        context.store.untrack_branch(branch)
        print(f"Stopped tracking {branch}.")
    run_action(directory, verbose, no_interactive, action)

@cli.group(name="branch", cls=AliasedGroup, help="Branch commands")
def branch_group() -> None:
    """Branch commands."""

@branch_group.command(name="delete", help="Delete a branch and its metadata; its children move onto its parent")
@click.argument('branch')
@click.option('--force', '-f', is_flag=True, help="Delete even if the branch is not merged")
@common_options
def branch_delete(branch: str, force: bool, directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Branch delete command."""
    def action(context: Context) -> None:
        children = context.store.get_children(branch)
        context.store.delete_branch(branch, force=force)
        print(f"Deleted {branch}.")
        if children:
            context.tip(f"Run `pystack restack` on {', '.join(children)} to rebase onto the new parent.")
    run_action(directory, verbose, no_interactive, action)

@cli.command(name="log", help="Show all stacks")
@common_options
def log(directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Log command."""
    def action(context: Context) -> None:
        builder = StackBuilder(context.store, context.config.repo)
        pretty.print_stacks(builder.all_stacks_from_trunk(), context.config.repo.trunk,
                            context.git_cmd.current_branch())
    run_action(directory, verbose, no_interactive, action)

@cli.command(name="info", help="Show what pystack knows about a branch")
@click.argument('branch', required=False)
@common_options
def info(branch: Optional[str], directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Info command."""
    def action(context: Context) -> None:
        name = branch or context.current_branch_precondition
        store = context.store
        if not store.is_tracked(name):
            raise UntrackedBranchError(name)
        pretty.print_header(name)
        print(f"   revision: {store.get_revision(name)}")
        if store.is_trunk(name):
            print("   trunk")
            return
        meta = store.read(name)
        print(f"   parent: {store.get_parent(name)}")
        if meta is not None and meta.parent_branch_revision:
            print(f"   parent revision: {meta.parent_branch_revision}")
        children: List[str] = store.get_children(name)
        if children:
            print(f"   children: {', '.join(children)}")
        review = store.get_review_info(name)
        if review is not None:
            for key, value in review.model_dump(exclude_none=True).items():
                if key != 'body':
                    print(f"   pr {key}: {value}")
    run_action(directory, verbose, no_interactive, action)

@cli.command(name="restack", help="Rebase the current branch and everything above it onto their parents")
@common_options
def restack(directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Restack command."""
    def action(context: Context) -> None:
        current = context.current_branch_precondition
        if not context.store.is_tracked(current):
            raise UntrackedBranchError(current)
        restack_upstack(context, current)
    run_action(directory, verbose, no_interactive, action)

@cli.command(name="continue", help="Continue a restack that stopped on a conflict")
@click.option('--all', '-a', 'add_all', is_flag=True, help="Stage all changes before continuing")
@common_options
def continue_cmd(add_all: bool, directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Continue command."""
    def action(context: Context) -> None:
        if add_all:
            context.git_cmd.stage_all()
        continue_restack(context)
    run_action(directory, verbose, no_interactive, action)

@cli.group(name="commit", cls=AliasedGroup, help="Commit commands")
def commit_group() -> None:
    """Commit commands."""

@commit_group.command(name="amend", help="Amend the current branch's tip and restack the branches above it")
@click.option('--all', '-a', 'add_all', is_flag=True, help="Stage all changes before committing")
@click.option('--message', '-m', type=str, help="The updated message for the commit")
@click.option('--no-edit', '-n', is_flag=True, help="Don't modify the existing commit message. Requires staged changes.")
@click.option('--patch', '-p', is_flag=True, help="Pick hunks to stage before committing")
@common_options
def commit_amend(add_all: bool, message: Optional[str], no_edit: bool, patch: bool,
                 directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Commit amend command."""
    opts = CommitOptions(add_all=add_all, message=message, patch=patch, no_edit=no_edit)
    run_action(directory, verbose, no_interactive, lambda context: commit_amend_action(opts, context))

@commit_group.command(name="create", help="Add a commit to the current branch and restack the branches above it")
@click.option('--all', '-a', 'add_all', is_flag=True, help="Stage all changes before committing")
@click.option('--message', '-m', type=str, help="The message for the new commit")
@click.option('--patch', '-p', is_flag=True, help="Pick hunks to stage before committing")
@common_options
def commit_create(add_all: bool, message: Optional[str], patch: bool,
                  directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Commit create command."""
    opts = CommitOptions(add_all=add_all, message=message, patch=patch)
    run_action(directory, verbose, no_interactive, lambda context: commit_create_action(opts, context))

@cli.command(name="submit", help="Create or update pull requests for the current stack")
@click.argument('branches', nargs=-1)
@click.option('--draft', '-d', is_flag=True, help="Create new PRs as drafts and turn existing ones into drafts")
@click.option('--publish', is_flag=True, help="Create new PRs ready for review and publish existing drafts")
@click.option('--update-only', '-u', is_flag=True, help="Only update branches that already have a PR")
@click.option('--dry-run', is_flag=True, help="Show what would be submitted without pushing or calling GitHub")
@click.option('--reviewers', '-r', is_flag=True, help="Prompt for reviewers of new PRs")
@click.option('--select', is_flag=True, help="Confirm each branch before submitting it")
@click.option('--edit', '-e', 'edit_inline', is_flag=True, help="Edit title and body of new PRs")
@click.option('--stack', '-s', is_flag=True, help="Also submit the branches above the current one")
@common_options
def submit(branches: Tuple[str, ...], draft: bool, publish: bool, update_only: bool, dry_run: bool,
           reviewers: bool, select: bool, edit_inline: bool, stack: bool,
           directory: Optional[str], verbose: int, no_interactive: bool) -> None:
    """Submit command."""
    args = SubmitArgs(
        edit_inline=edit_inline,
        draft=draft,
        publish=publish,
        update_only=update_only,
        dry_run=dry_run,
        reviewers=reviewers,
        select=select,
    )

    def action(context: Context) -> None:
        names = branches_to_submit(context, branches, stack=stack)
        pretty.print_header(f"Submitting {len(names)} branch{'es' if len(names) != 1 else ''}")
        submit_branches(names, args, context)
    run_action(directory, verbose, no_interactive, action, needs_github=not dry_run)


cli.add_alias("ss", "submit")
cli.add_alias("rs", "restack")
cli.add_alias("ca", "commit amend")
cli.add_alias("cc", "commit create")
commit_group.add_alias("a", "amend")
commit_group.add_alias("c", "create")


def main() -> None:
    """Main entry point."""
    cli(obj={})

if __name__ == "__main__":
    main()
