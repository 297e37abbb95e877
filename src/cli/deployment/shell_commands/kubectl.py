"""Kubectl command abstractions.

This module provides the read-only kubectl commands used to inspect a
release after it was installed: listing resources and tailing logs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class KubectlCommands:
    """Kubectl-related shell commands.

    Provides operations for:
    - Resource listing (all workload resources plus secrets)
    - Container log retrieval by label selector
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize kubectl commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    def get_all(
        self,
        namespace: str | None = None,
        *,
        resource_types: str = "all,secret",
    ) -> CommandResult:
        """List resources in a namespace.

        Args:
            namespace: Kubernetes namespace; the kube context default if None
            resource_types: Comma separated kubectl resource types
        """
        cmd = ["kubectl", "get", resource_types]
        if namespace:
            cmd.extend(["-n", namespace])
        return self._runner.run(cmd, capture_output=False)

    def logs(
        self,
        label_selector: str,
        namespace: str | None = None,
        *,
        follow: bool = False,
        pod_running_timeout: str | None = None,
    ) -> CommandResult:
        """Print logs for all containers of the pods matching a selector.

        Args:
            label_selector: Label selector, e.g. app.kubernetes.io/instance=web
            namespace: Kubernetes namespace; the kube context default if None
            follow: Keep streaming logs until the pods terminate
            pod_running_timeout: How long to wait for a pod to be running

        Returns:
            CommandResult with log retrieval status
        """
        cmd = ["kubectl", "logs", "-l", label_selector]
        if namespace:
            cmd.extend(["-n", namespace])
        cmd.append("--all-containers=true")
        if pod_running_timeout:
            cmd.append(f"--pod-running-timeout={pod_running_timeout}")
        if follow:
            cmd.append("--follow=true")
        return self._runner.run(cmd, capture_output=False)
