"""Helm command abstractions.

This module provides commands for the chart lifecycle: linting, packaging,
repository management, diffing, release installation and uninstallation.
Output of every command goes straight to the CI log unless a streaming
callback is supplied.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class HelmCommands:
    """Helm-related shell commands.

    Provides operations for:
    - Chart authoring (lint, package)
    - Repository management (repo add, fetch, repo index, gcs push)
    - Release management (diff, upgrade --install, uninstall)
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Helm commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    # =========================================================================
    # Chart Authoring
    # =========================================================================

    def lint(self, chart_path: Path) -> CommandResult:
        """Lint a chart directory including its subcharts."""
        cmd = ["helm", "lint", "--with-subcharts", str(chart_path)]
        return self._runner.run(cmd, capture_output=False)

    def package(
        self,
        chart_path: Path,
        *,
        app_version: str,
        version: str,
        dependency_update: bool = True,
    ) -> CommandResult:
        """Package a chart directory into a versioned archive.

        Args:
            chart_path: Path to the chart directory
            app_version: Application version stamped into Chart.yaml
            version: Chart version, also used in the archive filename
            dependency_update: Whether to refresh dependencies first

        Returns:
            CommandResult with packaging status
        """
        cmd = [
            "helm",
            "package",
            "--app-version",
            app_version,
            "--version",
            version,
        ]
        if dependency_update:
            cmd.append("--dependency-update")
        cmd.append(str(chart_path))
        return self._runner.run(cmd, capture_output=False)

    # =========================================================================
    # Repository Management
    # =========================================================================

    def repo_add(
        self,
        name: str,
        url: str,
        *,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Register a chart repository under a local name."""
        return self._runner.run(
            ["helm", "repo", "add", name, url], capture_output=False, env=env
        )

    def fetch(self, chart: str, version: str, repo_url: str) -> CommandResult:
        """Download a chart archive from a repository into the work dir."""
        cmd = ["helm", "fetch", chart, "--version", version, "--repo", repo_url]
        return self._runner.run(cmd, capture_output=False)

    def repo_index(self, url: str, repository_dir: Path) -> CommandResult:
        """Generate or update index.yaml for a chart repository directory.

        Args:
            url: Public URL the repository is served from
            repository_dir: Directory holding the repository working tree
        """
        cmd = ["helm", "repo", "index", "--url", url, "."]
        return self._runner.run(cmd, cwd=repository_dir, capture_output=False)

    def gcs_push(
        self,
        artifact: Path,
        repo_name: str,
        *,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Push a chart archive to a bucket-backed repository (helm-gcs plugin)."""
        cmd = ["helm", "gcs", "push", str(artifact), repo_name, "--retry"]
        return self._runner.run(cmd, capture_output=False, env=env)

    # =========================================================================
    # Release Management
    # =========================================================================

    def diff_upgrade(
        self,
        release_name: str,
        artifact: Path,
        *,
        namespace: str | None = None,
        value_files: list[Path] | None = None,
    ) -> CommandResult:
        """Show what an upgrade would change (helm-diff plugin).

        Never mutates cluster state. Unreleased charts are diffed against
        an empty release.
        """
        cmd = ["helm", "diff", "upgrade", release_name, str(artifact)]
        for vf in value_files or []:
            cmd.extend(["-f", str(vf)])
        if namespace:
            cmd.extend(["--namespace", namespace])
        cmd.append("--allow-unreleased")
        return self._runner.run(cmd, capture_output=False)

    def upgrade_install(
        self,
        release_name: str,
        artifact: Path,
        *,
        namespace: str | None = None,
        value_files: list[Path] | None = None,
        timeout: str = "120s",
        history_max: int = 1,
        atomic: bool = False,
        cleanup_on_fail: bool = False,
        force: bool = False,
        on_output: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Deploy or upgrade a Helm release.

        Uses `helm upgrade --install` to idempotently deploy a chart.
        If the release doesn't exist, it will be installed. If it exists,
        it will be upgraded.

        Args:
            release_name: Name for the Helm release
            artifact: Path to the packaged chart archive
            namespace: Kubernetes namespace; the kube context default if None
            value_files: Optional list of values override files
            timeout: Maximum time to wait for the release, helm duration syntax
            history_max: Number of revisions helm keeps for the release
            atomic: Roll back automatically when the upgrade fails
            cleanup_on_fail: Delete resources created by a failed upgrade
            force: Force resource updates through delete/recreate
            on_output: Optional callback for real-time output streaming.
                      If provided, each line of output is passed to this function.

        Returns:
            CommandResult with deployment status
        """
        cmd = ["helm", "upgrade", "--install", release_name, str(artifact)]
        for vf in value_files or []:
            cmd.extend(["-f", str(vf)])
        if namespace:
            cmd.extend(["--namespace", namespace])
        cmd.extend(["--history-max", str(history_max)])
        if cleanup_on_fail:
            cmd.append("--cleanup-on-fail")
        if atomic:
            cmd.append("--atomic")
        cmd.extend(["--timeout", timeout])
        if force:
            cmd.append("--force")

        if on_output:
            return self._runner.run_streaming(cmd, on_output=on_output)
        return self._runner.run(cmd, capture_output=False)

    def uninstall(
        self,
        release_name: str,
        *,
        namespace: str | None = None,
        timeout: str = "120s",
    ) -> CommandResult:
        """Uninstall a Helm release.

        Args:
            release_name: Name of the release to uninstall
            namespace: Kubernetes namespace; the kube context default if None
            timeout: Maximum time to wait for deletion
        """
        cmd = ["helm", "uninstall", release_name]
        if namespace:
            cmd.extend(["--namespace", namespace])
        cmd.extend(["--timeout", timeout])
        return self._runner.run(cmd, capture_output=False)
