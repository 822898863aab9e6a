"""Pydantic models for config types."""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class RepoConfig(BaseModel):
    """Repository configuration."""
    model_config = ConfigDict(extra="allow")

    trunk: str = "main"
    remote: str = "origin"
    # Branches that are never part of a stack; children of these are stack bases
    ignore_branches: List[str] = Field(default_factory=list)
    github_repo_owner: Optional[str] = None
    github_repo_name: Optional[str] = None

class UserConfig(BaseModel):
    """User configuration."""
    model_config = ConfigDict(extra="allow")

    interactive: bool = True
    log_git_commands: bool = True

class ToolConfig(BaseModel):
    """Tool configuration."""
    model_config = ConfigDict(extra="allow")

    pretend: bool = False

class PystackConfig(BaseModel):
    """Full pystack configuration."""
    model_config = ConfigDict(extra="allow")

    repo: RepoConfig = Field(default_factory=RepoConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)
