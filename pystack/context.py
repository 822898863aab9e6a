"""Everything a command needs, passed around explicitly."""

from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from .config.models import PystackConfig
from .errors import DetachedError
from .metadata import BranchMetadataStore
from .prompts import NonInteractivePrompter, Prompter
from .typing import GitInterface

if TYPE_CHECKING:
    from .github import GitHubClient


@dataclass
class Context:
    config: PystackConfig
    git_cmd: GitInterface
    store: BranchMetadataStore
    prompter: Prompter = field(default_factory=NonInteractivePrompter)
    interactive: bool = False
    github: Optional["GitHubClient"] = None
    tips: List[str] = field(default_factory=list)

    @classmethod
    def create(cls, config: PystackConfig, git_cmd: GitInterface,
               prompter: Optional[Prompter] = None, interactive: bool = False,
               github: Optional["GitHubClient"] = None) -> "Context":
        return cls(
            config=config,
            git_cmd=git_cmd,
            store=BranchMetadataStore(git_cmd, config.repo),
            prompter=prompter if prompter is not None else NonInteractivePrompter(),
            interactive=interactive,
            github=github,
        )

    @property
    def current_branch_precondition(self) -> str:
        branch = self.git_cmd.current_branch()
        if branch is None:
            raise DetachedError()
        return branch

    def tip(self, message: str) -> None:
        """Print a usage hint, at most once per message per command."""
        if message in self.tips:
            return
        self.tips.append(message)
        print(f"tip: {message}")
