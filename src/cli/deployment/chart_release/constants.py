"""Release constants and configuration.

This module centralizes the magic strings, paths and default values used
by the release actions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path


@dataclass(frozen=True)
class ReleaseConstants:
    """Constants for chart release actions.

    All attributes are class-level and immutable.
    """

    # Parameter defaults
    DEFAULT_KIND_HOST: str = "kubernetes"
    DEFAULT_TIMEOUT: timedelta = timedelta(seconds=120)
    DEFAULT_HELM_SUBDIRECTORY: str = "helm"
    DEFAULT_REPOSITORY_DIRECTORY: str = "helm-charts"
    DEFAULT_REPOSITORY_CHARTS_SUBDIRECTORY: str = "charts"
    DEFAULT_REPOSITORY_URL: str = "https://helm.estafette.io/"
    DEFAULT_REPOSITORY_BRANCH: str = "main"
    CREDENTIALS_PREFIX: str = "gke-"

    # Kind host endpoints
    KIND_PORT: int = 10080
    KIND_READY_PATH: str = "/kubernetes-ready"
    KIND_CONFIG_PATH: str = "/config"
    KIND_POLL_INTERVAL_SECONDS: float = 1.0
    KIND_REQUEST_TIMEOUT_SECONDS: float = 1.0

    # Helm release settings
    HISTORY_MAX: int = 1
    POD_RUNNING_TIMEOUT: str = "60s"
    INSTANCE_LABEL: str = "app.kubernetes.io/instance"
    GCS_REPO_NAME: str = "gcs-repo"

    # Chart repository commit identity
    GIT_USER_EMAIL: str = "bot@estafette.io"
    GIT_USER_NAME: str = "estafette-bot"

    # Injected credentials
    CREDENTIALS_ENV_VAR: str = "ESTAFETTE_CREDENTIALS_KUBERNETES_ENGINE"
    CREDENTIALS_TYPE: str = "kubernetes-engine"

    # File names
    OVERRIDE_VALUES_FILE: str = "override.yaml"
    REQUIREMENTS_FILE: str = "requirements.yaml"
    CHART_FILE: str = "Chart.yaml"


class ReleasePaths:
    """Path resolver for the well-known files a release writes and reads."""

    def __init__(
        self,
        work_dir: Path,
        *,
        credentials_file: Path = Path("/credentials/kubernetes_engine.json"),
        key_file: Path = Path("/key-file.json"),
        kube_config: Path | None = None,
    ) -> None:
        """Initialize release paths.

        Args:
            work_dir: Build workspace the pipeline checked the sources out to
            credentials_file: Mounted file with the injected credential set
            key_file: Where the service account key is handed to gcloud
            kube_config: Kube config written for the kind host; defaults to
                         ~/.kube/config of the invoking user
        """
        self.work_dir = work_dir
        self.credentials_file = credentials_file
        self.key_file = key_file
        self.kube_config = kube_config or Path.home() / ".kube" / "config"

    @property
    def override_values(self) -> Path:
        """Get path to the inline values override file."""
        return self.work_dir / ReleaseConstants.OVERRIDE_VALUES_FILE
