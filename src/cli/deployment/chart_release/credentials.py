"""Injected GKE credentials.

Trusted extensions get the credentials configured for the pipeline injected
as a JSON array, either as a mounted file or as an environment variable.
Each entry names a cluster, its project and location, and carries the
service account key used to authenticate against it.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import ReleaseConstants
from .errors import (
    CredentialNotFoundError,
    CredentialsNotProvidedError,
    MalformedCredentialError,
    ReleaseError,
)


class CredentialProperties(BaseModel):
    """Cluster connection facts of a credential record."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    project: str = ""
    cluster: str = ""
    zone: str = ""
    region: str = ""
    service_account_keyfile: str = Field(default="", alias="serviceAccountKeyfile")


class CredentialRecord(BaseModel):
    """One named entry of the injected credential set."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    name: str
    type: str = ""
    additional_properties: CredentialProperties = Field(
        default_factory=CredentialProperties, alias="additionalProperties"
    )

    @property
    def location_flag(self) -> tuple[str, str] | None:
        """The gcloud location option for the cluster, zone taking precedence."""
        props = self.additional_properties
        if props.zone:
            return ("zone", props.zone)
        if props.region:
            return ("region", props.region)
        return None


def load_credentials(
    credentials_file: Path,
    environ: Mapping[str, str] | None = None,
) -> list[CredentialRecord]:
    """Load the injected credential set.

    The mounted file is preferred; the environment variable is the fallback
    for runners that do not mount credentials.

    Args:
        credentials_file: Path of the mounted credentials file
        environ: Environment to read the fallback from (os.environ if None)

    Returns:
        The injected credential records

    Raises:
        CredentialsNotProvidedError: If nothing was injected
        MalformedCredentialError: If the injected content is not valid
    """
    environ = os.environ if environ is None else environ

    if credentials_file.is_file():
        logger.info("Reading credentials from file at path {}...", credentials_file)
        try:
            content = credentials_file.read_text()
        except OSError as e:
            raise MalformedCredentialError(
                f"Failed reading credential file at path {credentials_file}",
                details=str(e),
            ) from e
    elif environ.get(ReleaseConstants.CREDENTIALS_ENV_VAR):
        logger.info(
            "Reading credentials from environment variable {}...",
            ReleaseConstants.CREDENTIALS_ENV_VAR,
        )
        content = environ[ReleaseConstants.CREDENTIALS_ENV_VAR]
    else:
        raise _not_provided()

    logger.info("Unmarshalling injected credentials...")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedCredentialError(
            "Failed unmarshalling injected credentials", details=str(e)
        ) from e
    if not isinstance(data, list):
        raise MalformedCredentialError(
            "Failed unmarshalling injected credentials",
            details=f"Expected a JSON array, got {type(data).__name__}",
        )

    try:
        return [CredentialRecord.model_validate(item) for item in data]
    except ValidationError as e:
        raise MalformedCredentialError(
            "Failed unmarshalling injected credentials", details=str(e)
        ) from e


def resolve_credential(
    credentials: Sequence[CredentialRecord] | None, name: str
) -> CredentialRecord:
    """Find a credential record by exact, case-sensitive name.

    Raises:
        CredentialsNotProvidedError: If the credential set is absent or empty
        CredentialNotFoundError: If no record has the given name
    """
    if not credentials:
        raise _not_provided()

    logger.info("Checking if credential {} exists...", name)
    for credential in credentials:
        if credential.name == name:
            return credential
    raise CredentialNotFoundError(name)


def client_email(credential: CredentialRecord) -> str:
    """Extract the service account identity from a record's key file.

    Raises:
        MalformedCredentialError: If the key file is not a JSON object with
                                  a string ``client_email`` field
    """
    logger.info("Retrieving service account email from credentials...")
    keyfile = credential.additional_properties.service_account_keyfile
    try:
        key: Any = json.loads(keyfile)
    except json.JSONDecodeError as e:
        raise MalformedCredentialError(
            "Failed unmarshalling service account keyfile of credential "
            f"{credential.name}",
            details=str(e),
        ) from e

    if not isinstance(key, dict) or "client_email" not in key:
        raise MalformedCredentialError(
            "Field client_email missing from service account keyfile of credential "
            f"{credential.name}"
        )
    email = key["client_email"]
    if not isinstance(email, str):
        raise MalformedCredentialError(
            f"Field client_email of credential {credential.name} is not of type string"
        )
    return email


def write_key_file(credential: CredentialRecord, key_file: Path) -> Path:
    """Persist the raw service account key for gcloud, readable by owner only."""
    logger.info("Storing gcp credential {} on disk...", credential.name)
    try:
        fd = os.open(key_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(credential.additional_properties.service_account_keyfile)
        # O_CREAT leaves the mode of an existing file untouched
        key_file.chmod(0o600)
    except OSError as e:
        raise ReleaseError(
            f"Failed writing service account keyfile to {key_file}", details=str(e)
        ) from e
    return key_file


def _not_provided() -> CredentialsNotProvidedError:
    return CredentialsNotProvidedError(
        f"Credentials of type {ReleaseConstants.CREDENTIALS_TYPE} are not injected",
        details="Configure this extension as trusted and inject credentials of "
        f"type {ReleaseConstants.CREDENTIALS_TYPE}.",
    )


@dataclass(frozen=True)
class ResolvedCredential:
    """A credential record ready to be handed to gcloud."""

    record: CredentialRecord
    client_email: str
    key_file: Path


class CredentialResolver:
    """Resolves named credentials from the injected set.

    The credential set is loaded on first use and resolved credentials are
    cached, so each name is resolved and its key file written once per run.
    """

    def __init__(
        self,
        credentials_file: Path,
        key_file: Path,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            credentials_file: Path of the mounted credentials file
            key_file: Well-known path the service account key is written to
            environ: Environment for the credentials fallback (os.environ if None)
        """
        self.credentials_file = credentials_file
        self.key_file = key_file
        self._environ = environ
        self._credentials: list[CredentialRecord] | None = None
        self._resolved: dict[str, ResolvedCredential] = {}

    def resolve(self, name: str) -> ResolvedCredential:
        """Look up a credential, extract its identity and persist its key.

        Raises:
            CredentialError: If the credential is missing or malformed
        """
        if name in self._resolved:
            return self._resolved[name]

        if self._credentials is None:
            self._credentials = load_credentials(self.credentials_file, self._environ)

        record = resolve_credential(self._credentials, name)
        email = client_email(record)
        write_key_file(record, self.key_file)

        resolved = ResolvedCredential(
            record=record, client_email=email, key_file=self.key_file
        )
        self._resolved[name] = resolved
        return resolved
