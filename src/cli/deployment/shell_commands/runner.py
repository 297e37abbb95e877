"""Command runner for executing shell commands.

This module provides the base command execution functionality used by
all specialized command modules.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from loguru import logger

from .types import CommandResult, format_command


class CommandRunner:
    """Low-level command executor with consistent result handling.

    This class provides the foundation for executing shell commands with
    proper output capture, error handling, and streaming support.

    All specialized command modules (Helm, kubectl, git, gcloud) use
    this runner for actual command execution. Commands are always passed
    as argv lists; nothing is ever routed through a shell.
    """

    def __init__(self, work_dir: Path) -> None:
        """Initialize the command runner.

        Args:
            work_dir: Directory the commands are executed from by default.
        """
        self.work_dir = work_dir

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        capture_output: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Execute a command and return structured result.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to work_dir)
            capture_output: Whether to capture stdout/stderr. When False the
                           output goes straight to the CI log.
            env: Extra environment variables layered over os.environ

        Returns:
            CommandResult with success status, output, and return code
        """
        argv = list(cmd)
        logger.info("Running command: {}", format_command(argv))

        try:
            result = subprocess.run(
                argv,
                cwd=cwd or self.work_dir,
                capture_output=capture_output,
                text=True,
                check=False,
                env=self._merged_env(env),
            )
        except OSError as e:
            return self._not_started(argv, e)

        if result.returncode != 0:
            logger.debug(
                "Command {} exited with status {}", argv[0], result.returncode
            )
        return CommandResult(
            success=result.returncode == 0,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            returncode=result.returncode,
            cmd=argv,
        )

    def run_streaming(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        on_output: Callable[[str], None] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Execute a command with real-time output streaming.

        This method runs a command and calls the on_output callback for each
        line of output, allowing real-time progress display.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to work_dir)
            on_output: Callback function called with each line of output.
                      If None, output is collected but not streamed.
            env: Extra environment variables layered over os.environ

        Returns:
            CommandResult with success status, collected output, and return code
        """
        argv = list(cmd)
        logger.info("Running command: {}", format_command(argv))

        stdout_lines: list[str] = []

        try:
            process = subprocess.Popen(
                argv,
                cwd=cwd or self.work_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,  # Merge stderr into stdout
                text=True,
                bufsize=1,
                env=self._merged_env(env),
            )
        except OSError as e:
            return self._not_started(argv, e)

        with process:
            if process.stdout:
                for line in iter(process.stdout.readline, ""):
                    line = line.rstrip("\n")
                    if line:
                        stdout_lines.append(line)
                        if on_output:
                            on_output(line)

            process.wait()

        return CommandResult(
            success=process.returncode == 0,
            stdout="\n".join(stdout_lines),
            stderr="",  # stderr is merged into stdout
            returncode=process.returncode or 0,
            cmd=argv,
        )

    @staticmethod
    def _not_started(argv: list[str], error: OSError) -> CommandResult:
        # 127: command not found
        logger.error("Could not run {}: {}", argv[0], error)
        return CommandResult(
            success=False,
            stdout="",
            stderr=str(error),
            returncode=127,
            cmd=argv,
        )

    @staticmethod
    def _merged_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
        if not env:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged
