"""Types exchanged between the submit planner and the GitHub client."""

from dataclasses import dataclass
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

SubmissionAction = Literal['create', 'update']


class SubmissionEntry(BaseModel):
    """One branch's worth of work for the review gateway.

    Built fresh for every submit run and consumed once.
    """
    head: str
    head_revision: str
    base: str
    base_revision: str
    action: SubmissionAction
    # update
    pr_number: Optional[int] = None
    # create; for update None means "leave the draft state alone"
    draft: Optional[bool] = None
    title: Optional[str] = None
    body: Optional[str] = None
    reviewers: List[str] = Field(default_factory=list)


@dataclass
class PullRequest:
    """Pull request info as returned by GitHub."""
    number: int
    head: str
    base: str
    title: str = ""
    is_draft: bool = False
    url: str = ""

    def __str__(self) -> str:
        draft = " (draft)" if self.is_draft else ""
        return f"PR #{self.number} - {self.title}{draft}"
