"""
Git worktree lookups.

Only what the orchestrator needs: listing worktrees and resolving the
branch checked out at a path (used to enrich hook environments).
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Worktree:
    """One entry of ``git worktree list``."""

    path: str
    branch: Optional[str] = None
    is_main_worktree: bool = False

    @property
    def branch_name(self) -> Optional[str]:
        """Branch without the refs/heads/ prefix."""
        if self.branch and self.branch.startswith("refs/heads/"):
            return self.branch[len("refs/heads/"):]
        return self.branch


def parse_worktree_porcelain(output: str) -> List[Worktree]:
    """Parse ``git worktree list --porcelain`` output.

    Records are separated by blank lines; the first record is the main
    worktree. Detached or bare entries have no branch.
    """
    worktrees: List[Worktree] = []
    current: Optional[Worktree] = None
    for line in output.splitlines():
        if line.startswith("worktree "):
            current = Worktree(path=line[len("worktree "):], is_main_worktree=not worktrees)
            worktrees.append(current)
        elif line.startswith("branch ") and current is not None:
            current.branch = line[len("branch "):]
        elif not line.strip():
            current = None
    return worktrees


class WorktreeService:
    """Worktree collaborator backed by the git CLI."""

    def __init__(self, repo_root: Optional[str] = None):
        self.repo_root = repo_root or os.getcwd()

    def get_worktrees(self) -> List[Worktree]:
        try:
            result = subprocess.run(
                ["git", "worktree", "list", "--porcelain"],
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (subprocess.SubprocessError, OSError) as e:
            logger.debug("git worktree list failed: %s", e)
            return []
        if result.returncode != 0:
            return []
        return parse_worktree_porcelain(result.stdout)

    def get_branch_for_path(self, path: str) -> Optional[str]:
        target = os.path.realpath(path)
        for worktree in self.get_worktrees():
            if os.path.realpath(worktree.path) == target:
                return worktree.branch_name
        return None
