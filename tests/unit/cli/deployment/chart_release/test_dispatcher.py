"""Tests for the release action dispatcher."""

import io
import json
from pathlib import Path
from unittest.mock import MagicMock, call

import pytest
from loguru import logger
from rich.console import Console

from src.cli.deployment.chart_release.constants import ReleasePaths
from src.cli.deployment.chart_release.credentials import (
    CredentialRecord,
    ResolvedCredential,
)
from src.cli.deployment.chart_release.dispatcher import ActionDispatcher
from src.cli.deployment.chart_release.errors import (
    CollaboratorExecutionError,
    ConfigurationError,
    ReleaseFailedError,
    UnsupportedActionError,
)
from src.cli.deployment.chart_release.params import (
    Action,
    BuildHints,
    ReleaseParams,
    resolve_params,
)
from src.cli.deployment.shell_commands.types import CommandResult

OK = CommandResult(success=True)
FAILED = CommandResult(success=False, returncode=1, cmd=["helm", "upgrade"])

HINTS = BuildHints(
    git_name="web-repo",
    app_label="web",
    build_version="1.0.0",
    release_target_name="staging",
)


def _params(yaml_text: str) -> ReleaseParams:
    return resolve_params(yaml_text, HINTS)


@pytest.fixture
def commands() -> MagicMock:
    """Shell commands where every call succeeds."""
    commands = MagicMock()
    for tool in (
        commands.helm,
        commands.kubectl,
        commands.gcloud,
        commands.git,
    ):
        for name in (
            "lint",
            "package",
            "repo_add",
            "fetch",
            "repo_index",
            "gcs_push",
            "diff_upgrade",
            "upgrade_install",
            "uninstall",
            "get_all",
            "logs",
            "activate_service_account",
            "set_account",
            "set_project",
            "get_cluster_credentials",
            "status",
            "add_all",
            "commit",
            "push",
        ):
            getattr(tool, name).return_value = OK
    commands.git.config_identity.return_value = [OK, OK]
    return commands


@pytest.fixture
def resolver(tmp_path: Path) -> MagicMock:
    record = CredentialRecord.model_validate(
        {
            "name": "gke-staging",
            "type": "kubernetes-engine",
            "additionalProperties": {
                "project": "my-project",
                "cluster": "staging",
                "zone": "europe-west1-b",
                "serviceAccountKeyfile": json.dumps({"client_email": "sa@p.iam"}),
            },
        }
    )
    resolver = MagicMock()
    resolver.resolve.return_value = ResolvedCredential(
        record=record, client_email="sa@p.iam", key_file=tmp_path / "key-file.json"
    )
    return resolver


@pytest.fixture
def kind() -> MagicMock:
    kind = MagicMock()
    kind.__enter__.return_value = kind
    kind.wait_until_ready.return_value = 1
    return kind


@pytest.fixture
def dispatcher(
    commands: MagicMock, resolver: MagicMock, kind: MagicMock, tmp_path: Path
) -> ActionDispatcher:
    paths = ReleasePaths(
        tmp_path,
        credentials_file=tmp_path / "credentials.json",
        key_file=tmp_path / "key-file.json",
        kube_config=tmp_path / ".kube" / "config",
    )
    return ActionDispatcher(
        Console(file=io.StringIO()),
        commands,
        paths,
        resolver=resolver,
        kind_host_factory=MagicMock(return_value=kind),
    )


class TestDispatch:
    def test_every_action_has_a_handler(self, dispatcher: ActionDispatcher) -> None:
        assert set(dispatcher.handlers) == set(Action)

    def test_unsupported_action(
        self, dispatcher: ActionDispatcher, commands: MagicMock
    ) -> None:
        with pytest.raises(UnsupportedActionError) as excinfo:
            dispatcher.dispatch(_params("action: frobnicate"))

        assert excinfo.value.message == "Action 'frobnicate' is not supported"
        for action in Action.values():
            assert f"'{action}'" in (excinfo.value.details or "")
        assert commands.mock_calls == []

    def test_missing_action(self, dispatcher: ActionDispatcher) -> None:
        with pytest.raises(UnsupportedActionError, match="Action '' is not supported"):
            dispatcher.dispatch(_params("chart: web"))

    def test_validation_runs_before_any_command(
        self, dispatcher: ActionDispatcher, commands: MagicMock, resolver: MagicMock
    ) -> None:
        params = resolve_params("action: install", BuildHints(app_label="web"))

        with pytest.raises(ConfigurationError):
            dispatcher.dispatch(params)

        resolver.resolve.assert_not_called()
        assert commands.mock_calls == []

    def test_returns_dispatched_action(self, dispatcher: ActionDispatcher) -> None:
        assert dispatcher.dispatch(_params("action: lint")) is Action.LINT


class TestChartAuthoring:
    def test_lint(
        self, dispatcher: ActionDispatcher, commands: MagicMock, tmp_path: Path
    ) -> None:
        dispatcher.dispatch(_params("action: lint"))

        commands.helm.lint.assert_called_once_with(tmp_path / "helm" / "web")

    def test_lint_failure(
        self, dispatcher: ActionDispatcher, commands: MagicMock
    ) -> None:
        commands.helm.lint.return_value = FAILED

        with pytest.raises(CollaboratorExecutionError, match="Linting chart web"):
            dispatcher.dispatch(_params("action: lint"))

    def test_package_adds_http_dependency_repositories(
        self, dispatcher: ActionDispatcher, commands: MagicMock, tmp_path: Path
    ) -> None:
        chart_dir = tmp_path / "helm" / "web"
        chart_dir.mkdir(parents=True)
        (chart_dir / "requirements.yaml").write_text(
            """dependencies:
- name: postgresql
  repository: https://charts.bitnami.com/bitnami
- name: common
  repository: file://../common
"""
        )

        dispatcher.dispatch(_params("action: package\nappVersion: 1.0.0-abc"))

        commands.helm.repo_add.assert_called_once_with(
            "postgresql", "https://charts.bitnami.com/bitnami"
        )
        commands.helm.package.assert_called_once_with(
            chart_dir, app_version="1.0.0-abc", version="1.0.0"
        )

    def test_package_logs_why_local_subcharts_are_skipped(
        self, dispatcher: ActionDispatcher, commands: MagicMock, tmp_path: Path
    ) -> None:
        chart_dir = tmp_path / "helm" / "web"
        chart_dir.mkdir(parents=True)
        (chart_dir / "Chart.yaml").write_text(
            """apiVersion: v2
name: web
dependencies:
- name: common
  repository: file://../common
- name: shared
  repository: "@stable"
"""
        )
        messages: list[str] = []
        handler_id = logger.add(messages.append, format="{message}")
        try:
            dispatcher.dispatch(_params("action: package"))
        finally:
            logger.remove(handler_id)

        commands.helm.repo_add.assert_not_called()
        skipped = [m for m in messages if m.startswith("Skipping repository add")]
        assert len(skipped) == 2
        assert "local or aliased subchart" in skipped[0]
        assert "file://../common" in skipped[0]
        assert "@stable" in skipped[1]


class TestKindTest:
    def test_installs_into_kind_host(
        self,
        dispatcher: ActionDispatcher,
        commands: MagicMock,
        kind: MagicMock,
        resolver: MagicMock,
        tmp_path: Path,
    ) -> None:
        (tmp_path / "web-1.0.0.tgz").write_bytes(b"")

        dispatcher.dispatch(_params("action: test\nvalues: 'replicas: 1'"))

        kind.wait_until_ready.assert_called_once()
        kind.prepare_kube_config.assert_called_once_with(tmp_path / ".kube" / "config")
        assert (tmp_path / "override.yaml").read_text() == "replicas: 1"
        upgrade = commands.helm.upgrade_install.call_args
        assert upgrade.args == ("web", tmp_path / "web-1.0.0.tgz")
        assert upgrade.kwargs["value_files"] == [tmp_path / "override.yaml"]
        assert upgrade.kwargs["timeout"] == "120s"
        assert "namespace" not in upgrade.kwargs
        commands.helm.fetch.assert_not_called()
        commands.kubectl.get_all.assert_called_once_with(None)
        resolver.resolve.assert_not_called()

    def test_failure_shows_diagnostics_once(
        self, dispatcher: ActionDispatcher, commands: MagicMock, tmp_path: Path
    ) -> None:
        (tmp_path / "web-1.0.0.tgz").write_bytes(b"")
        commands.helm.upgrade_install.return_value = FAILED

        with pytest.raises(ReleaseFailedError):
            dispatcher.dispatch(_params("action: test"))

        commands.kubectl.get_all.assert_called_once()
        commands.kubectl.logs.assert_called_once()


class TestRepository:
    def test_publish_to_git_repository(
        self, dispatcher: ActionDispatcher, commands: MagicMock, tmp_path: Path
    ) -> None:
        (tmp_path / "web-1.0.0.tgz").write_bytes(b"chart")

        dispatcher.dispatch(_params("action: publish"))

        published = tmp_path / "helm-charts" / "charts" / "web-1.0.0.tgz"
        assert published.read_bytes() == b"chart"
        commands.helm.repo_index.assert_called_once_with(
            "https://helm.estafette.io/", tmp_path / "helm-charts"
        )
        commands.git.commit.assert_called_once_with(
            tmp_path / "helm-charts", "web v1.0.0", allow_empty=True
        )
        commands.git.push.assert_called_once_with(tmp_path / "helm-charts", "main")

    def test_publish_to_bucket(
        self,
        dispatcher: ActionDispatcher,
        commands: MagicMock,
        resolver: MagicMock,
        tmp_path: Path,
    ) -> None:
        (tmp_path / "web-1.0.0.tgz").write_bytes(b"chart")

        dispatcher.dispatch(_params("action: publish\nbucket: my-charts"))

        env = {"GOOGLE_APPLICATION_CREDENTIALS": str(tmp_path / "key-file.json")}
        resolver.resolve.assert_called_once_with("gke-staging")
        commands.gcloud.activate_service_account.assert_called_once()
        commands.gcloud.get_cluster_credentials.assert_not_called()
        commands.helm.repo_add.assert_called_once_with(
            "gcs-repo", "gs://my-charts", env=env
        )
        commands.helm.gcs_push.assert_called_once_with(
            tmp_path / "web-1.0.0.tgz", "gcs-repo", env=env
        )
        commands.git.push.assert_not_called()

    def test_purge_without_matches_is_a_no_op(
        self, dispatcher: ActionDispatcher, commands: MagicMock
    ) -> None:
        dispatcher.dispatch(_params("action: purge"))

        commands.helm.repo_index.assert_not_called()
        commands.git.commit.assert_not_called()
        commands.git.push.assert_not_called()

    def test_purge_removes_prereleases(
        self, dispatcher: ActionDispatcher, commands: MagicMock, tmp_path: Path
    ) -> None:
        charts = tmp_path / "helm-charts" / "charts"
        charts.mkdir(parents=True)
        (charts / "web-1.0.0.tgz").write_bytes(b"")
        (charts / "web-1.0.0-beta.1.tgz").write_bytes(b"")

        dispatcher.dispatch(_params("action: purge"))

        assert sorted(p.name for p in charts.iterdir()) == ["web-1.0.0.tgz"]
        commands.git.commit.assert_called_once_with(
            tmp_path / "helm-charts", "purged web v1.0.0-.+", allow_empty=True
        )


class TestCluster:
    def test_diff_does_not_install(
        self, dispatcher: ActionDispatcher, commands: MagicMock, tmp_path: Path
    ) -> None:
        (tmp_path / "web-1.0.0.tgz").write_bytes(b"")

        dispatcher.dispatch(_params("action: diff\nnamespace: apps"))

        commands.helm.diff_upgrade.assert_called_once_with(
            "web", tmp_path / "web-1.0.0.tgz", namespace="apps", value_files=[]
        )
        commands.helm.upgrade_install.assert_not_called()

    def test_install_fetches_missing_chart(
        self, dispatcher: ActionDispatcher, commands: MagicMock
    ) -> None:
        dispatcher.dispatch(_params("action: install"))

        commands.helm.fetch.assert_called_once_with(
            "web", "1.0.0", "https://helm.estafette.io/"
        )

    def test_install_authenticates_before_helm(
        self, dispatcher: ActionDispatcher, commands: MagicMock
    ) -> None:
        dispatcher.dispatch(_params("action: install\nforce: true\nfollowLogs: true"))

        names = [c[0] for c in commands.mock_calls]
        assert names.index("gcloud.get_cluster_credentials") < names.index(
            "helm.diff_upgrade"
        )
        assert names.index("helm.diff_upgrade") < names.index("helm.upgrade_install")
        upgrade = commands.helm.upgrade_install.call_args.kwargs
        assert upgrade["atomic"] is True
        assert upgrade["cleanup_on_fail"] is True
        assert upgrade["force"] is True
        assert upgrade["namespace"] is None
        commands.kubectl.logs.assert_called_once_with(
            "app.kubernetes.io/instance=web",
            None,
            follow=True,
            pod_running_timeout="60s",
        )

    def test_install_failure_collects_diagnostics_and_fails(
        self, dispatcher: ActionDispatcher, commands: MagicMock
    ) -> None:
        commands.helm.upgrade_install.return_value = FAILED
        commands.kubectl.logs.side_effect = OSError("kubectl not found")

        with pytest.raises(ReleaseFailedError) as excinfo:
            dispatcher.dispatch(_params("action: install\nnamespace: apps"))

        assert "Namespace: apps" in (excinfo.value.details or "")
        assert commands.kubectl.get_all.call_args_list == [call("apps")]
        assert commands.kubectl.logs.call_args_list == [
            call("app.kubernetes.io/instance=web", "apps")
        ]

    def test_uninstall(
        self, dispatcher: ActionDispatcher, commands: MagicMock
    ) -> None:
        dispatcher.dispatch(_params("action: uninstall\nrelease: web-canary"))

        commands.helm.uninstall.assert_called_once_with(
            "web-canary", namespace=None, timeout="120s"
        )

    def test_cluster_context_initialized_once(
        self,
        dispatcher: ActionDispatcher,
        commands: MagicMock,
        resolver: MagicMock,
    ) -> None:
        params = _params("action: install")

        dispatcher.install(params)
        dispatcher.uninstall(params)

        resolver.resolve.assert_called_once_with("gke-staging")
        commands.gcloud.set_project.assert_called_once_with("my-project")
        commands.gcloud.get_cluster_credentials.assert_called_once_with(
            "staging", zone="europe-west1-b"
        )
