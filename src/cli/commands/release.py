"""Chart release command.

The pipeline runs this command once per stage. Everything it needs comes
from the environment the CI system injects: the stage's custom properties
as YAML plus a handful of build metadata variables.
"""

from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from src.cli.context import build_cli_context
from src.cli.deployment.chart_release import ActionDispatcher
from src.cli.deployment.chart_release.params import BuildHints, resolve_params
from src.cli.shared.console import with_error_handling
from src.cli.shared.log_config import LogFormat, LogLevel, configure_logging


@with_error_handling
def release(
    params_yaml: Annotated[
        str,
        typer.Option(
            "--params-yaml",
            envvar="ESTAFETTE_EXTENSION_CUSTOM_PROPERTIES_YAML",
            help="Extension parameters as YAML",
            show_default=False,
        ),
    ],
    release_action: Annotated[
        str,
        typer.Option(
            "--release-action",
            envvar="ESTAFETTE_RELEASE_ACTION",
            help="Action of the running release, used when no action is set",
        ),
    ] = "",
    git_name: Annotated[
        str,
        typer.Option(
            "--git-name",
            envvar="ESTAFETTE_GIT_NAME",
            help="Repository name, used as chart name fallback",
        ),
    ] = "",
    app_name: Annotated[
        str,
        typer.Option(
            "--app-name",
            envvar="ESTAFETTE_LABEL_APP",
            help="App label, preferred chart name fallback",
        ),
    ] = "",
    build_version: Annotated[
        str,
        typer.Option(
            "--build-version",
            envvar="ESTAFETTE_BUILD_VERSION",
            help="Build version, used for version and appVersion fallbacks",
        ),
    ] = "",
    release_target_name: Annotated[
        str,
        typer.Option(
            "--release-target-name",
            envvar="ESTAFETTE_RELEASE_NAME",
            help="Release target name, used to derive the credentials name",
        ),
    ] = "",
    credentials_path: Annotated[
        Path,
        typer.Option(
            "--credentials-path",
            envvar="ESTAFETTE_CREDENTIALS_PATH",
            help="Path to the injected kubernetes-engine credentials",
        ),
    ] = Path("/credentials/kubernetes_engine.json"),
    log_format: Annotated[
        LogFormat,
        typer.Option(
            "--log-format",
            envvar="ESTAFETTE_LOG_FORMAT",
            help="Log output format",
            case_sensitive=False,
        ),
    ] = LogFormat.PLAINTEXT,
    log_level: Annotated[
        LogLevel,
        typer.Option(
            "--log-level",
            envvar="ESTAFETTE_LOG_LEVEL",
            help="Minimum log level",
            case_sensitive=False,
        ),
    ] = LogLevel.INFO,
) -> None:
    """Lint, package, test, publish, purge, diff, install or uninstall a chart.

    Examples:
        chart-release --params-yaml "action: lint"
        ESTAFETTE_EXTENSION_CUSTOM_PROPERTIES_YAML="action: package" chart-release
    """
    configure_logging(log_level, log_format)

    hints = BuildHints(
        git_name=git_name,
        app_label=app_name,
        build_version=build_version,
        release_target_name=release_target_name,
        release_action=release_action,
    )
    params = resolve_params(params_yaml, hints)
    logger.debug("Resolved parameters: {}", params.model_dump(exclude={"values"}))

    context = build_cli_context(Path.cwd(), credentials_file=credentials_path)
    context.console.print_header(f"Chart release: {params.action} {params.chart}")

    dispatcher = ActionDispatcher(
        context.console.console,
        context.commands,
        context.paths,
        constants=context.constants,
    )
    action = dispatcher.dispatch(params)

    context.console.ok(f"Finished {action.value} for chart {params.chart}")
