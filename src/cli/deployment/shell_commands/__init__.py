"""Shell command abstractions for chart release operations.

This package provides a clean interface over the external command line
tools the release actions drive. It is organized into specialized modules
for each tool:

- helm: chart linting, packaging, repositories and releases
- kubectl: resource listing and container logs
- git: committing and pushing chart repository changes
- gcloud: service account activation and GKE cluster credentials

Usage:
    from src.cli.deployment.shell_commands import ShellCommands

    commands = ShellCommands(work_dir=Path("."))
    result = commands.helm.lint(Path("helm/my-chart"))
    if not result.success:
        ...
"""

from pathlib import Path

from .gcloud import GcloudCommands
from .git import GitCommands
from .helm import HelmCommands
from .kubectl import KubectlCommands
from .runner import CommandRunner
from .types import CommandResult, format_command


class ShellCommands:
    """Unified interface for all shell command operations.

    Attributes:
        helm: Helm-related commands
        kubectl: Kubernetes kubectl commands
        git: Git repository commands
        gcloud: Google Cloud CLI commands

    Example:
        >>> commands = ShellCommands(Path("."))
        >>> commands.helm.upgrade_install("my-release", artifact, namespace="web")
    """

    def __init__(self, work_dir: Path) -> None:
        """Initialize the shell commands executor.

        Args:
            work_dir: Path to the build workspace.
                      Commands will be executed from this directory by default.
        """
        self._work_dir = Path(work_dir)
        self._runner = CommandRunner(self._work_dir)

        self.helm = HelmCommands(self._runner)
        self.kubectl = KubectlCommands(self._runner)
        self.git = GitCommands(self._runner)
        self.gcloud = GcloudCommands(self._runner)

    @property
    def work_dir(self) -> Path:
        """Get the workspace path."""
        return self._work_dir


__all__ = [
    "ShellCommands",
    "CommandResult",
    "format_command",
    "HelmCommands",
    "KubectlCommands",
    "GitCommands",
    "GcloudCommands",
    "CommandRunner",
]
