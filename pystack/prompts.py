"""Interactive prompts used while submitting."""

from typing import List, Optional, Protocol

import click


class Prompter(Protocol):
    def confirm(self, message: str, default: bool = True) -> bool:
        ...

    def text(self, message: str, default: str = "") -> str:
        ...

    def edit(self, initial: str) -> str:
        ...

    def reviewers(self) -> List[str]:
        ...


class ClickPrompter:
    """Prompts on the terminal through click."""

    def confirm(self, message: str, default: bool = True) -> bool:
        return click.confirm(message, default=default)

    def text(self, message: str, default: str = "") -> str:
        value: str = click.prompt(message, default=default, show_default=bool(default))
        return value.strip()

    def edit(self, initial: str) -> str:
        edited: Optional[str] = click.edit(initial, extension=".md")
        # click.edit returns None when the editor exits without saving
        return initial if edited is None else edited.strip()

    def reviewers(self) -> List[str]:
        value: str = click.prompt("Reviewers (comma separated GitHub logins)", default="", show_default=False)
        return [r.strip() for r in value.split(",") if r.strip()]


class NonInteractivePrompter:
    """Answers every prompt with its default."""

    def confirm(self, message: str, default: bool = True) -> bool:
        return default

    def text(self, message: str, default: str = "") -> str:
        return default

    def edit(self, initial: str) -> str:
        return initial

    def reviewers(self) -> List[str]:
        return []
