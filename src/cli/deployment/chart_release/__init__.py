"""Chart release package for CI/CD driven Helm chart lifecycles.

This package provides the release engine, with each concern separated into
its own module:

- params: release parameters, their defaults and validation
- credentials: injected GKE credentials and service account keys
- cluster_context: gcloud authentication and cluster credentials
- kind: readiness polling and kube config for the kind test host
- chart_repository: publishing to and purging a git chart repository
- diagnostics: best-effort resource listing and logs after a failure
- dispatcher: one handler per release action

Usage:
    from src.cli.deployment.chart_release import ActionDispatcher, resolve_params

    params = resolve_params(params_yaml, hints)
    ActionDispatcher(console, commands, paths).dispatch(params)
"""

from .chart_repository import ChartRepository
from .cluster_context import ClusterContext, ClusterContextInitializer
from .constants import ReleaseConstants, ReleasePaths
from .credentials import (
    CredentialRecord,
    CredentialResolver,
    ResolvedCredential,
    load_credentials,
    resolve_credential,
)
from .diagnostics import DiagnosticsCollector, DiagnosticsReport
from .dispatcher import ActionDispatcher
from .errors import (
    CollaboratorExecutionError,
    ConfigurationError,
    CredentialError,
    CredentialNotFoundError,
    CredentialsNotProvidedError,
    MalformedCredentialError,
    ReleaseError,
    ReleaseFailedError,
    UnsupportedActionError,
)
from .kind import KindHost
from .params import Action, BuildHints, ReleaseParams, resolve_params

__all__ = [
    "ActionDispatcher",
    "Action",
    "BuildHints",
    "ReleaseParams",
    "resolve_params",
    "ReleaseConstants",
    "ReleasePaths",
    # Component classes for testing/extension
    "ChartRepository",
    "ClusterContext",
    "ClusterContextInitializer",
    "CredentialRecord",
    "CredentialResolver",
    "ResolvedCredential",
    "load_credentials",
    "resolve_credential",
    "DiagnosticsCollector",
    "DiagnosticsReport",
    "KindHost",
    # Errors
    "ReleaseError",
    "ConfigurationError",
    "UnsupportedActionError",
    "CredentialError",
    "CredentialsNotProvidedError",
    "CredentialNotFoundError",
    "MalformedCredentialError",
    "CollaboratorExecutionError",
    "ReleaseFailedError",
]
