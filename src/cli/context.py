"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from src.cli.deployment.chart_release.constants import ReleaseConstants, ReleasePaths
from src.cli.deployment.shell_commands import ShellCommands
from src.cli.shared.console import CLIConsole, console


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    work_dir: Path
    commands: ShellCommands
    constants: ReleaseConstants
    paths: ReleasePaths


def build_cli_context(
    work_dir: Path | None = None,
    *,
    credentials_file: Path = Path("/credentials/kubernetes_engine.json"),
) -> CLIContext:
    """Build a fresh CLIContext rooted at the build workspace."""
    work_dir = Path(work_dir or Path.cwd())

    return CLIContext(
        console=console,
        work_dir=work_dir,
        commands=ShellCommands(work_dir),
        constants=ReleaseConstants(),
        paths=ReleasePaths(work_dir, credentials_file=credentials_file),
    )
