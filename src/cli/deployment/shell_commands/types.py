"""Data types for shell command results.

This module contains the dataclasses shared by the shell command modules.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field

__all__ = [
    "CommandResult",
    "format_command",
]


@dataclass
class CommandResult:
    """Result of a command execution.

    Attributes:
        success: Whether the command exited with status 0
        stdout: Captured standard output (empty when not captured)
        stderr: Captured standard error (empty when not captured)
        returncode: Process exit status
        cmd: The argv that was executed
    """

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    cmd: list[str] = field(default_factory=list)

    @property
    def command_line(self) -> str:
        """Shell-quoted rendering of the executed argv, for log output."""
        return format_command(self.cmd)


def format_command(cmd: Sequence[str]) -> str:
    """Render an argv list as a single shell-quoted string."""
    return shlex.join(list(cmd))
