"""Git command abstractions.

This module provides the commands used to publish changes made to a chart
repository working tree: identity setup, staging, committing and pushing.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class GitCommands:
    """Git-related shell commands.

    All commands take the repository directory explicitly, since the chart
    repository is a separate checkout inside the build workspace.
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Git commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    def config_identity(self, email: str, name: str) -> list[CommandResult]:
        """Set the global commit identity.

        Returns:
            One CommandResult per `git config` call
        """
        return [
            self._runner.run(
                ["git", "config", "--global", "user.email", email],
                capture_output=False,
            ),
            self._runner.run(
                ["git", "config", "--global", "user.name", name],
                capture_output=False,
            ),
        ]

    def status(self, repository_dir: Path) -> CommandResult:
        """Print the working tree status."""
        return self._runner.run(
            ["git", "status"], cwd=repository_dir, capture_output=False
        )

    def add_all(self, repository_dir: Path) -> CommandResult:
        """Stage every change, including deletions."""
        return self._runner.run(
            ["git", "add", "--all"], cwd=repository_dir, capture_output=False
        )

    def commit(
        self,
        repository_dir: Path,
        message: str,
        *,
        allow_empty: bool = True,
    ) -> CommandResult:
        """Commit staged changes.

        Args:
            repository_dir: Repository working tree
            message: Commit message
            allow_empty: Succeed even when nothing is staged
        """
        cmd = ["git", "commit"]
        if allow_empty:
            cmd.append("--allow-empty")
        cmd.extend(["-m", message])
        return self._runner.run(cmd, cwd=repository_dir, capture_output=False)

    def push(
        self,
        repository_dir: Path,
        branch: str,
        *,
        remote: str = "origin",
    ) -> CommandResult:
        """Push a branch to a remote."""
        return self._runner.run(
            ["git", "push", remote, branch],
            cwd=repository_dir,
            capture_output=False,
        )
