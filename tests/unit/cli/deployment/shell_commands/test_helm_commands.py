"""Tests for Helm chart and release commands."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.cli.deployment.shell_commands.helm import HelmCommands
from src.cli.deployment.shell_commands.types import CommandResult


@pytest.fixture
def mock_runner() -> MagicMock:
    """Create a mock command runner."""
    runner = MagicMock()
    runner.run.return_value = CommandResult(success=True)
    runner.run_streaming.return_value = CommandResult(success=True)
    return runner


@pytest.fixture
def helm_commands(mock_runner: MagicMock) -> HelmCommands:
    """Create HelmCommands instance with mock runner."""
    return HelmCommands(mock_runner)


class TestChartAuthoring:
    """Tests for lint and package."""

    def test_lint_includes_subcharts(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.lint(Path("helm/web"))

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == ["helm", "lint", "--with-subcharts", "helm/web"]

    def test_package_sets_versions_and_updates_dependencies(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.package(Path("helm/web"), app_version="1.2.3", version="1.2.3")

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == [
            "helm",
            "package",
            "--app-version",
            "1.2.3",
            "--version",
            "1.2.3",
            "--dependency-update",
            "helm/web",
        ]

    def test_package_output_is_not_captured(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.package(Path("helm/web"), app_version="1", version="1")

        assert mock_runner.run.call_args.kwargs["capture_output"] is False


class TestRepositories:
    """Tests for repository management commands."""

    def test_repo_index_runs_inside_repository(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.repo_index("https://helm.example.com/", Path("/ws/helm-charts"))

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == [
            "helm",
            "repo",
            "index",
            "--url",
            "https://helm.example.com/",
            ".",
        ]
        assert mock_runner.run.call_args.kwargs["cwd"] == Path("/ws/helm-charts")

    def test_fetch_pins_version_and_repo(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.fetch("web", "1.0.0", "https://helm.example.com/")

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == [
            "helm",
            "fetch",
            "web",
            "--version",
            "1.0.0",
            "--repo",
            "https://helm.example.com/",
        ]

    def test_gcs_push_passes_environment(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        env = {"GOOGLE_APPLICATION_CREDENTIALS": "/key-file.json"}

        helm_commands.gcs_push(Path("web-1.0.0.tgz"), "gcs-repo", env=env)

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == ["helm", "gcs", "push", "web-1.0.0.tgz", "gcs-repo", "--retry"]
        assert mock_runner.run.call_args.kwargs["env"] == env


class TestReleases:
    """Tests for diff, upgrade --install and uninstall."""

    def test_diff_upgrade_allows_unreleased(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.diff_upgrade(
            "web",
            Path("web-1.0.0.tgz"),
            namespace="apps",
            value_files=[Path("override.yaml")],
        )

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == [
            "helm",
            "diff",
            "upgrade",
            "web",
            "web-1.0.0.tgz",
            "-f",
            "override.yaml",
            "--namespace",
            "apps",
            "--allow-unreleased",
        ]

    def test_diff_upgrade_without_namespace_omits_flag(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.diff_upgrade("web", Path("web-1.0.0.tgz"), namespace=None)

        cmd = mock_runner.run.call_args[0][0]
        assert "--namespace" not in cmd

    def test_upgrade_install_with_all_safety_flags(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.upgrade_install(
            "web",
            Path("web-1.0.0.tgz"),
            namespace="apps",
            timeout="300s",
            atomic=True,
            cleanup_on_fail=True,
            force=True,
        )

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == [
            "helm",
            "upgrade",
            "--install",
            "web",
            "web-1.0.0.tgz",
            "--namespace",
            "apps",
            "--history-max",
            "1",
            "--cleanup-on-fail",
            "--atomic",
            "--timeout",
            "300s",
            "--force",
        ]

    def test_upgrade_install_without_force(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.upgrade_install("web", Path("web-1.0.0.tgz"))

        cmd = mock_runner.run.call_args[0][0]
        assert "--force" not in cmd
        assert "--atomic" not in cmd
        assert cmd[cmd.index("--timeout") + 1] == "120s"

    def test_upgrade_install_streams_when_callback_given(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        lines: list[str] = []

        helm_commands.upgrade_install(
            "web", Path("web-1.0.0.tgz"), on_output=lines.append
        )

        mock_runner.run.assert_not_called()
        mock_runner.run_streaming.assert_called_once()
        assert mock_runner.run_streaming.call_args.kwargs["on_output"] == lines.append

    def test_uninstall(
        self, helm_commands: HelmCommands, mock_runner: MagicMock
    ) -> None:
        helm_commands.uninstall("web", namespace="apps", timeout="60s")

        cmd = mock_runner.run.call_args[0][0]
        assert cmd == [
            "helm",
            "uninstall",
            "web",
            "--namespace",
            "apps",
            "--timeout",
            "60s",
        ]
