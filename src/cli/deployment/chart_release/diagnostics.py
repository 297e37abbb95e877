"""Best-effort post-release diagnostics.

After an upgrade fails, the operator wants to see what is running and what
the pods logged. Gathering that information must never replace the original
failure, so every step's outcome is recorded in a DiagnosticsReport and a
failed step is only logged.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from ..shell_commands.types import CommandResult

if TYPE_CHECKING:
    from ..shell_commands.kubectl import KubectlCommands


@dataclass
class DiagnosticStep:
    """Outcome of a single diagnostics command."""

    description: str
    result: CommandResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None and self.result.success


@dataclass
class DiagnosticsReport:
    """Outcome of a diagnostics run. Failures are informational only."""

    steps: list[DiagnosticStep] = field(default_factory=list)

    @property
    def failures(self) -> list[DiagnosticStep]:
        return [step for step in self.steps if not step.ok]


class DiagnosticsCollector:
    """Lists release resources and prints pod logs without ever raising."""

    def __init__(self, kubectl: KubectlCommands) -> None:
        self._kubectl = kubectl

    def collect(self, label_selector: str, namespace: str | None) -> DiagnosticsReport:
        """Gather diagnostics after a failed install or upgrade.

        Lists all resources including secrets, then prints the logs of all
        containers matching the selector.
        """
        logger.info("Installation failed, showing resources and logs...")
        report = DiagnosticsReport()
        report.steps.append(
            self._attempt(
                "Listing resources",
                lambda: self._kubectl.get_all(namespace),
            )
        )
        report.steps.append(
            self._attempt(
                f"Showing logs for {label_selector}",
                lambda: self._kubectl.logs(label_selector, namespace),
            )
        )
        return report

    def show_logs(
        self,
        label_selector: str,
        namespace: str | None,
        *,
        follow: bool = False,
        pod_running_timeout: str | None = None,
    ) -> DiagnosticsReport:
        """Print the logs of a successfully installed release."""
        logger.info("Showing logs for container...")
        step = self._attempt(
            f"Showing logs for {label_selector}",
            lambda: self._kubectl.logs(
                label_selector,
                namespace,
                follow=follow,
                pod_running_timeout=pod_running_timeout,
            ),
        )
        return DiagnosticsReport(steps=[step])

    def show_resources(self, namespace: str | None) -> DiagnosticsReport:
        """List all resources including secrets."""
        logger.info("Showing all resources...")
        step = self._attempt(
            "Listing resources", lambda: self._kubectl.get_all(namespace)
        )
        return DiagnosticsReport(steps=[step])

    @staticmethod
    def _attempt(description: str, call: Callable[[], CommandResult]) -> DiagnosticStep:
        try:
            result = call()
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("{} could not be run, ignoring: {}", description, e)
            return DiagnosticStep(description=description, error=e)

        if not result.success:
            logger.warning(
                "{} exited with status {}, ignoring", description, result.returncode
            )
        return DiagnosticStep(description=description, result=result)
