"""Google Cloud CLI command abstractions.

This module provides the gcloud commands needed to authenticate a service
account and fetch GKE cluster credentials into the local kube config.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class GcloudCommands:
    """gcloud-related shell commands.

    Provides operations for:
    - Service account activation
    - Active account/project selection
    - GKE cluster credential retrieval
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize gcloud commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    def activate_service_account(self, email: str, key_file: Path) -> CommandResult:
        """Authenticate gcloud as a service account using its key file."""
        cmd = [
            "gcloud",
            "auth",
            "activate-service-account",
            email,
            "--key-file",
            str(key_file),
        ]
        return self._runner.run(cmd, capture_output=False)

    def set_account(self, email: str) -> CommandResult:
        """Select the active account."""
        return self._runner.run(
            ["gcloud", "config", "set", "account", email], capture_output=False
        )

    def set_project(self, project: str) -> CommandResult:
        """Select the active project."""
        return self._runner.run(
            ["gcloud", "config", "set", "project", project], capture_output=False
        )

    def get_cluster_credentials(
        self,
        cluster: str,
        *,
        zone: str | None = None,
        region: str | None = None,
    ) -> CommandResult:
        """Write kube config credentials for a GKE cluster.

        Exactly one of zone or region is passed on; zone wins when both are set.

        Raises:
            ValueError: If neither zone nor region is given
        """
        cmd = ["gcloud", "container", "clusters", "get-credentials", cluster]
        if zone:
            cmd.extend(["--zone", zone])
        elif region:
            cmd.extend(["--region", region])
        else:
            raise ValueError("either zone or region is required")
        return self._runner.run(cmd, capture_output=False)
