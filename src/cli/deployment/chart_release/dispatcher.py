"""Release action dispatcher.

This module provides the ActionDispatcher which runs one release action per
invocation. Each Action has exactly one handler; the dispatcher decides
which external operations run, in what order and with what parameters, and
how a failure is reported:

- lint / package: chart authoring, no cluster access
- test: install into an ephemeral kind cluster
- publish / purge: maintain a chart repository (git checkout or bucket)
- diff / install / uninstall: operate on a GKE cluster resolved from
  injected credentials

Cluster credentials are resolved and activated at most once per run and
always before the first cluster-scoped command.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ..shell_commands import ShellCommands
from .chart_repository import ChartRepository
from .cluster_context import ClusterContext, ClusterContextInitializer
from .constants import ReleaseConstants, ReleasePaths
from .credentials import CredentialResolver, ResolvedCredential
from .diagnostics import DiagnosticsCollector
from .errors import (
    ReleaseError,
    ReleaseFailedError,
    UnsupportedActionError,
    ensure_success,
)
from .kind import KindHost
from .params import Action, ReleaseParams
from .requirements import read_dependencies

ActionHandler = Callable[[ReleaseParams], None]


class ActionDispatcher:
    """Runs the release action selected by the resolved parameters.

    Attributes:
        commands: Shell command executor
        paths: Well-known file locations
        resolver: Injected credential resolver
        cluster: gcloud cluster context initializer
        diagnostics: Post-failure diagnostics collector
    """

    def __init__(
        self,
        console: Console,
        commands: ShellCommands,
        paths: ReleasePaths,
        *,
        constants: ReleaseConstants | None = None,
        resolver: CredentialResolver | None = None,
        kind_host_factory: Callable[[str], KindHost] = KindHost,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            console: Rich console for output
            commands: Shell command executor
            paths: Well-known file locations
            constants: Optional release constants
            resolver: Credential resolver; built from paths if None
            kind_host_factory: Creates the kind host client for the test action
        """
        self.console = console
        self.commands = commands
        self.paths = paths
        self.constants = constants or ReleaseConstants()
        self.resolver = resolver or CredentialResolver(
            paths.credentials_file, paths.key_file
        )
        self.cluster = ClusterContextInitializer(commands.gcloud)
        self.diagnostics = DiagnosticsCollector(commands.kubectl)
        self._kind_host_factory = kind_host_factory
        self._context: ClusterContext | None = None

        self._handlers: dict[Action, ActionHandler] = {
            Action.LINT: self.lint,
            Action.PACKAGE: self.package,
            Action.TEST: self.test,
            Action.PUBLISH: self.publish,
            Action.DIFF: self.diff,
            Action.INSTALL: self.install,
            Action.UNINSTALL: self.uninstall,
            Action.PURGE: self.purge,
        }

    @property
    def handlers(self) -> dict[Action, ActionHandler]:
        return dict(self._handlers)

    def dispatch(self, params: ReleaseParams) -> Action:
        """Validate the parameters for their action and run it.

        Returns:
            The action that was run

        Raises:
            UnsupportedActionError: If the action is unknown
            ReleaseError: If the action fails
        """
        try:
            action = Action(params.action)
        except ValueError:
            raise UnsupportedActionError(params.action, Action.values()) from None

        params.validate_for(action)
        self._handlers[action](params)
        return action

    # =========================================================================
    # Chart authoring
    # =========================================================================

    def lint(self, params: ReleaseParams) -> None:
        logger.info("Linting chart {}...", params.chart)
        ensure_success(
            self.commands.helm.lint(self._workspace(params.chart_path)),
            f"Linting chart {params.chart}",
        )

    def package(self, params: ReleaseParams) -> None:
        """Register dependency repositories, then package the chart."""
        chart_dir = self._workspace(params.chart_path)
        for dependency in read_dependencies(chart_dir):
            if not dependency.repository.startswith(("http://", "https://")):
                logger.info(
                    "Skipping repository add for dependency {}: '{}' refers to a "
                    "local or aliased subchart, not a chart repository",
                    dependency.name,
                    dependency.repository or "<unset>",
                )
                continue
            logger.info(
                "Adding required repository {} for dependency {}...",
                dependency.repository,
                dependency.name,
            )
            ensure_success(
                self.commands.helm.repo_add(dependency.name, dependency.repository),
                f"Adding repository {dependency.repository}",
            )

        logger.info(
            "Packaging chart {} with app version {} and version {}...",
            params.chart,
            params.app_version,
            params.version,
        )
        ensure_success(
            self.commands.helm.package(
                chart_dir, app_version=params.app_version, version=params.version
            ),
            f"Packaging chart {params.chart}",
        )

    # =========================================================================
    # Kind test cluster
    # =========================================================================

    def test(self, params: ReleaseParams) -> None:
        """Install the chart into the pipeline's kind host and show the result."""
        logger.info(
            "Testing chart {} with app version {} and version {} on kind host {}...",
            params.chart,
            params.app_version,
            params.version,
            params.kind_host,
        )

        with self._kind_host_factory(params.kind_host) as kind:
            logger.info("Waiting for kind host to be ready...")
            attempts = kind.wait_until_ready()
            logger.info("Kind host ready after {} attempt(s)", attempts)

            logger.info("Preparing kind host for using Helm...")
            kind.prepare_kube_config(self.paths.kube_config)

        value_files = self._write_values(params)
        artifact = self._ensure_artifact(params)

        logger.info("Showing template to be installed...")
        ensure_success(
            self.commands.helm.diff_upgrade(
                params.chart, artifact, value_files=value_files
            ),
            f"Diffing chart {params.chart}",
        )

        logger.info(
            "Installing chart file {} and waiting for {} for it to be ready...",
            artifact.name,
            params.helm_timeout,
        )
        result = self.commands.helm.upgrade_install(
            params.chart,
            artifact,
            value_files=value_files,
            timeout=params.helm_timeout,
            history_max=self.constants.HISTORY_MAX,
            on_output=self._print_helm_output,
        )
        if not result.success:
            self._fail_release(params, release_name=params.chart, namespace=None)

        self.diagnostics.show_logs(params.label_selector, None)
        self.diagnostics.show_resources(None)

    # =========================================================================
    # Chart repository
    # =========================================================================

    def publish(self, params: ReleaseParams) -> None:
        """Publish the packaged chart to a bucket or a git chart repository."""
        logger.info(
            "Publishing chart {} with app version {} and version {}...",
            params.chart,
            params.app_version,
            params.version,
        )
        artifact = self._workspace(params.artifact_name)

        if params.bucket:
            self._publish_to_bucket(params, artifact)
            return

        repository = self._chart_repository(params)
        repository.add_artifact(artifact)
        repository.reindex(params.repository_url)
        repository.commit_and_push(
            f"{params.chart} v{params.version}", params.repository_branch
        )

    def _publish_to_bucket(self, params: ReleaseParams, artifact: Path) -> None:
        if not artifact.is_file():
            raise ReleaseError(
                f"Chart archive {artifact.name} not found",
                details="Run the package action before publishing.",
            )
        credential = self._credential(params)
        self.cluster.activate_identity(credential)

        env = {"GOOGLE_APPLICATION_CREDENTIALS": str(credential.key_file)}
        repo_name = self.constants.GCS_REPO_NAME
        logger.info("Publishing {} to bucket {}...", artifact.name, params.bucket)
        ensure_success(
            self.commands.helm.repo_add(repo_name, f"gs://{params.bucket}", env=env),
            f"Adding bucket repository gs://{params.bucket}",
        )
        ensure_success(
            self.commands.helm.gcs_push(artifact, repo_name, env=env),
            f"Pushing {artifact.name} to gs://{params.bucket}",
        )

    def purge(self, params: ReleaseParams) -> None:
        """Remove pre-release archives of the chart version from the repository.

        Finding nothing to remove is a successful no-op: the index is then
        neither regenerated nor committed.
        """
        logger.info(
            "Purging pre-release version for chart {} with versions '{}-.+'...",
            params.chart,
            params.version,
        )
        repository = self._chart_repository(params)
        repository.ensure_charts_dir()

        files = repository.find_prerelease_artifacts(params.chart, params.version)
        if not files:
            logger.info("Found 0 files to purge")
            return

        repository.remove(files)
        repository.reindex(params.repository_url)
        repository.commit_and_push(
            f"purged {params.chart} v{params.version}-.+", params.repository_branch
        )

    # =========================================================================
    # GKE cluster
    # =========================================================================

    def diff(self, params: ReleaseParams) -> None:
        self._diff(params)

    def install(self, params: ReleaseParams) -> None:
        """Diff, then upgrade --install the release atomically."""
        artifact, value_files = self._diff(params)

        logger.info(
            "Installing chart and waiting for {} for it to be ready...",
            params.helm_timeout,
        )
        result = self.commands.helm.upgrade_install(
            params.release_name,
            artifact,
            namespace=params.namespace_or_none,
            value_files=value_files,
            timeout=params.helm_timeout,
            history_max=self.constants.HISTORY_MAX,
            atomic=True,
            cleanup_on_fail=True,
            force=params.force,
            on_output=self._print_helm_output,
        )
        if not result.success:
            self._fail_release(
                params,
                release_name=params.release_name,
                namespace=params.namespace_or_none,
            )

        self.diagnostics.show_logs(
            params.label_selector,
            params.namespace_or_none,
            follow=params.follow_logs,
            pod_running_timeout=self.constants.POD_RUNNING_TIMEOUT,
        )

    def uninstall(self, params: ReleaseParams) -> None:
        logger.info("Uninstalling release {}...", params.release_name)
        self._cluster_context(params)
        ensure_success(
            self.commands.helm.uninstall(
                params.release_name,
                namespace=params.namespace_or_none,
                timeout=params.helm_timeout,
            ),
            f"Uninstalling release {params.release_name}",
        )

    def _diff(self, params: ReleaseParams) -> tuple[Path, list[Path]]:
        logger.info(
            "Installing chart {} with app version {} and version {}...",
            params.chart,
            params.app_version,
            params.version,
        )
        self._cluster_context(params)

        value_files = self._write_values(params)
        artifact = self._ensure_artifact(params)

        logger.info("Showing template to be installed...")
        ensure_success(
            self.commands.helm.diff_upgrade(
                params.release_name,
                artifact,
                namespace=params.namespace_or_none,
                value_files=value_files,
            ),
            f"Diffing release {params.release_name}",
        )
        return artifact, value_files

    # =========================================================================
    # Helpers
    # =========================================================================

    def _credential(self, params: ReleaseParams) -> ResolvedCredential:
        return self.resolver.resolve(params.credentials)

    def _cluster_context(self, params: ReleaseParams) -> ClusterContext:
        if self._context is None:
            self._context = self.cluster.init_context(self._credential(params))
        return self._context

    def _workspace(self, relative: Path | str) -> Path:
        return self.paths.work_dir / relative

    def _chart_repository(self, params: ReleaseParams) -> ChartRepository:
        return ChartRepository(
            self.commands,
            self._workspace(params.repository_directory),
            params.repository_charts_subdirectory,
            constants=self.constants,
        )

    def _write_values(self, params: ReleaseParams) -> list[Path]:
        """Write inline values to the override file, if any were given."""
        if not params.values:
            return []

        path = self.paths.override_values
        logger.info("Writing values to {}...", path.name)
        try:
            path.write_text(params.values)
        except OSError as e:
            raise ReleaseError(f"Failed writing {path.name}", details=str(e)) from e
        self.console.print(
            Panel(Text(params.values), title=path.name, border_style="dim")
        )
        return [path]

    def _ensure_artifact(self, params: ReleaseParams) -> Path:
        """Return the local chart archive, fetching it from the repository if absent."""
        artifact = self._workspace(params.artifact_name)
        if not artifact.is_file():
            logger.info(
                "No helm package present, retrieving helm chart {} version {} "
                "from {}...",
                params.chart,
                params.version,
                params.repository_url,
            )
            ensure_success(
                self.commands.helm.fetch(
                    params.chart, params.version, params.repository_url
                ),
                f"Fetching chart {params.chart} version {params.version}",
            )
        return artifact

    def _fail_release(
        self, params: ReleaseParams, *, release_name: str, namespace: str | None
    ) -> None:
        """Gather diagnostics for a failed upgrade, then fail the run."""
        self.console.print("[red]✗ Helm upgrade failed[/red]")
        report = self.diagnostics.collect(params.label_selector, namespace)
        for step in report.failures:
            logger.warning("Diagnostics step '{}' did not succeed", step.description)

        raise ReleaseFailedError(
            f"Installing chart {params.chart} as release {release_name} failed",
            details=(
                f"Action: {params.action}\n"
                f"Chart: {params.chart} {params.version}\n"
                f"Release: {release_name}\n"
                f"Namespace: {namespace or '<kube context default>'}\n"
                f"Timeout: {params.helm_timeout}\n\n"
                "Resources and logs of the release are shown above."
            ),
        )

    def _print_helm_output(self, line: str) -> None:
        """Print Helm output in real-time."""
        line = line.strip()
        if line:
            self.console.print(Text(f"  {line}", style="dim"))
