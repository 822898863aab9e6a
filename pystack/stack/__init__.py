"""Stack trees built from branch metadata.

A Stack is an arena of StackNodes keyed by branch name. Nodes refer to their
parents and children by name, so a stack is a plain tree of dicts and lists
with no reference cycles. Stacks are views: they are rebuilt from the
metadata store whenever a command needs one.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional, Set

from ..config.models import RepoConfig
from ..errors import StackConsistencyError
from ..metadata import Branch, BranchMetadataStore

logger = logging.getLogger(__name__)


class TraversalPolicy(Enum):
    # Whole tree from the stack base; source is the base
    FULL_STACK = "full_stack"
    # Whole tree from the stack base; source is the requested branch
    UPSTACK_WITH_PARENTS = "upstack_with_parents"
    # Only the requested branch and what is above it
    UPSTACK_WITHOUT_PARENTS = "upstack_without_parents"


@dataclass
class StackNode:
    branch: Branch
    parents: List[str] = field(default_factory=list)
    children: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.branch.name


class Stack:
    """A tree of branches with one node of interest, the source."""

    def __init__(self, root: str, nodes: Dict[str, StackNode], source: Optional[str] = None):
        self.root = root
        self.nodes = nodes
        self.source = source if source is not None else root

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def branch_names(self, start: Optional[str] = None) -> List[str]:
        """Depth-first, parent-before-children order starting at start (default root)."""
        result: List[str] = []
        pending = [start if start is not None else self.root]
        while pending:
            name = pending.pop()
            result.append(name)
            pending.extend(reversed(self.nodes[name].children))
        return result

    def upstack_exclusive(self) -> List[str]:
        """Everything above the source, parents first."""
        return self.branch_names(self.source)[1:]

    def downstack(self) -> List[str]:
        """The source and its ancestors inside this stack, bottom first."""
        result: List[str] = []
        current: Optional[str] = self.source
        while current is not None:
            result.append(current)
            parents = self.nodes[current].parents
            current = parents[0] if parents else None
        return list(reversed(result))

    def depth(self, name: str) -> int:
        depth = 0
        parents = self.nodes[name].parents
        while parents:
            depth += 1
            parents = self.nodes[parents[0]].parents
        return depth


class StackBuilder:
    """Builds Stacks out of the metadata store."""

    def __init__(self, store: BranchMetadataStore, config: RepoConfig):
        self.store = store
        self.config = config

    def all_stacks_from_trunk(self) -> List[Stack]:
        """One stack per disjoint tree of tracked, non-ignored branches."""
        return [self.full_stack_from_branch(base) for base in self.all_stack_bases()]

    def full_stack_from_branch(self, branch: Branch) -> Stack:
        return self.build_stack(branch, TraversalPolicy.FULL_STACK)

    def upstack_inclusive_from_branch_with_parents(self, branch: Branch) -> Stack:
        return self.build_stack(branch, TraversalPolicy.UPSTACK_WITH_PARENTS)

    def upstack_inclusive_from_branch_without_parents(self, branch: Branch) -> Stack:
        return self.build_stack(branch, TraversalPolicy.UPSTACK_WITHOUT_PARENTS)

    def build_stack(self, branch: Branch, policy: TraversalPolicy) -> Stack:
        if policy is TraversalPolicy.UPSTACK_WITHOUT_PARENTS:
            return self._expand(branch)

        stack = self._expand(self.stack_base(branch))
        if policy is TraversalPolicy.FULL_STACK:
            return stack

        pending = [stack.root]
        while pending:
            name = pending.pop()
            if name == branch.name:
                stack.source = name
                return stack
            pending.extend(reversed(stack.nodes[name].children))
        raise StackConsistencyError(
            f"Branch {branch.name} is missing from the stack rooted at its own base {stack.root}."
        )

    def all_stack_bases(self) -> List[Branch]:
        bases: List[Branch] = []
        seen: Set[str] = set()
        for branch in self.store.all_branches():
            if branch.name in self.config.ignore_branches or branch.name == self.config.trunk:
                continue
            base = self.stack_base(branch)
            if base.name not in seen:
                seen.add(base.name)
                bases.append(base)
        return bases

    def stack_base(self, branch: Branch) -> Branch:
        """The ancestor of branch that sits directly on trunk, an ignored or an untracked branch."""
        current = branch.name
        visited: Set[str] = set()
        while True:
            if current in visited:
                raise StackConsistencyError(f"Parent links of {branch.name} form a cycle through {current}.")
            visited.add(current)
            parent = self.store.get_parent(current)
            if (parent is None or parent == self.config.trunk
                    or parent in self.config.ignore_branches
                    or not self.store.is_tracked(parent)):
                return branch if current == branch.name else self.store.get_branch(current)
            current = parent

    def _expand(self, source: Branch) -> Stack:
        """Breadth-first expansion of source's children into a fresh stack."""
        nodes: Dict[str, StackNode] = {source.name: StackNode(source)}
        queue: Deque[str] = deque([source.name])
        while queue:
            name = queue.popleft()
            for child in self.store.get_children(name):
                if child in nodes:
                    raise StackConsistencyError(f"Branch {child} was reached twice while building {source.name}.")
                nodes[child] = StackNode(self.store.get_branch(child), parents=[name])
                nodes[name].children.append(child)
                queue.append(child)
        logger.debug(f"Built stack from {source.name}: {list(nodes)}")
        return Stack(source.name, nodes)
