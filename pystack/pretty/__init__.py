"""Pretty formatting utilities for CLI output."""

import shutil
import sys
from typing import IO, List, Optional

from ..metadata import ReviewInfo
from ..stack import Stack

def get_term_width() -> int:
    """Get terminal width, default to 80 if can't detect."""
    try:
        return shutil.get_terminal_size().columns
    except (OSError, ValueError):
        return 80


def header(text: str, use_emoji: bool = True) -> str:
    """Create a boxed header with optional emoji."""
    width = max(get_term_width(), len(text) + 8)

    h_line = "─" * (width - 2)
    v_line = "│"
    emoji = "🥞 " if use_emoji else ""

    result = [
        f"┌{h_line}┐",
        f"{v_line} {emoji}{text}{' ' * max(width - len(text) - len(emoji) - 3, 0)}{v_line}",
        f"└{h_line}┘"
    ]

    return "\n".join(result)


def print_header(text: str, use_emoji: bool = True, file: Optional[IO[str]] = None) -> None:
    """Print a header to file (default stdout)."""
    if file is None:
        file = sys.stdout
    print(header(text, use_emoji), file=file)


def review_label(info: Optional[ReviewInfo]) -> str:
    if info is None or info.number is None:
        return ""
    draft = " draft" if info.is_draft else ""
    return f" (PR #{info.number}{draft})"


def format_stack(stack: Stack, current: Optional[str] = None) -> List[str]:
    """Indented tree of a stack, one line per branch, parents above children."""
    lines: List[str] = []
    for name in stack.branch_names():
        node = stack.nodes[name]
        marker = "◉" if name == current else "◯"
        indent = "  " * stack.depth(name)
        lines.append(f"{indent}{marker} {name}{review_label(node.branch.review_info)}")
    return lines


def print_stacks(stacks: List[Stack], trunk: str, current: Optional[str] = None,
                 file: Optional[IO[str]] = None) -> None:
    """Print every stack under the trunk."""
    if file is None:
        file = sys.stdout
    marker = "◉" if trunk == current else "◯"
    print(f"{marker} {trunk}", file=file)
    if not stacks:
        print("  (no stacked branches)", file=file)
    for stack in stacks:
        for line in format_stack(stack, current):
            print(f"  {line}", file=file)
