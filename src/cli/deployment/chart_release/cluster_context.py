"""GKE cluster context initialization.

Turns a resolved credential into an authenticated gcloud session and a kube
config entry pointing at the credential's cluster. gcloud's active account
and project are idempotent to re-set, so a failure part way through leaves
nothing that needs rolling back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from .credentials import ResolvedCredential
from .errors import CredentialError, ensure_success

if TYPE_CHECKING:
    from ..shell_commands.gcloud import GcloudCommands


@dataclass(frozen=True)
class ClusterContext:
    """The cluster the kube config now points at."""

    account: str
    project: str
    cluster: str
    location_flag: str
    location: str


class ClusterContextInitializer:
    """Activates credentials against gcloud and fetches cluster credentials."""

    def __init__(self, gcloud: GcloudCommands) -> None:
        self._gcloud = gcloud

    def activate_identity(self, credential: ResolvedCredential) -> None:
        """Authenticate as the credential's service account and make it active.

        Raises:
            CollaboratorExecutionError: If a gcloud call fails
        """
        email = credential.client_email

        logger.info("Authenticating to google cloud")
        ensure_success(
            self._gcloud.activate_service_account(email, credential.key_file),
            "Activating service account",
        )

        logger.info("Setting gcloud account to {}", email)
        ensure_success(self._gcloud.set_account(email), "Setting gcloud account")

    def init_context(self, credential: ResolvedCredential) -> ClusterContext:
        """Authenticate, select the project and fetch cluster credentials.

        Raises:
            CredentialError: If the credential has neither zone nor region
            CollaboratorExecutionError: If a gcloud call fails
        """
        record = credential.record
        props = record.additional_properties
        location = record.location_flag
        if location is None:
            raise CredentialError(
                f"Credential {record.name} has no zone or region",
                details="At least one of them has to be defined for the cluster "
                f"{props.cluster or '<unset>'}.",
            )

        self.activate_identity(credential)

        logger.info("Setting gcloud project to {}", props.project)
        ensure_success(
            self._gcloud.set_project(props.project), "Setting gcloud project"
        )

        flag, value = location
        logger.info("Getting gke credentials for cluster {}", props.cluster)
        ensure_success(
            self._gcloud.get_cluster_credentials(props.cluster, **{flag: value}),
            f"Getting credentials for cluster {props.cluster}",
        )

        return ClusterContext(
            account=credential.client_email,
            project=props.project,
            cluster=props.cluster,
            location_flag=flag,
            location=value,
        )
