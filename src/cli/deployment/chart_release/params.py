"""Release parameters and their defaulting rules.

The pipeline hands the extension a YAML document of custom properties.
It is parsed once into a frozen ReleaseParams model, then completed from
the build's own metadata (BuildHints) exactly once before any action reads it.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .constants import ReleaseConstants
from .errors import ConfigurationError


class ScalarTextLoader(yaml.SafeLoader):
    """SafeLoader that keeps numeric-looking scalars as their source text.

    Versions such as ``1.10`` or ``010`` would otherwise turn into 1.1 and 8.
    Booleans and nulls are still resolved.
    """


ScalarTextLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag not in ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml(text: str) -> Any:
    """Parse a YAML document with ScalarTextLoader."""
    return yaml.load(text, Loader=ScalarTextLoader)


class Action(str, Enum):
    """Supported release actions."""

    LINT = "lint"
    PACKAGE = "package"
    TEST = "test"
    PUBLISH = "publish"
    DIFF = "diff"
    INSTALL = "install"
    UNINSTALL = "uninstall"
    PURGE = "purge"

    @classmethod
    def values(cls) -> list[str]:
        return [a.value for a in cls]

    @property
    def requires_cluster(self) -> bool:
        """Whether the action talks to a GKE cluster resolved from credentials."""
        return self in (Action.DIFF, Action.INSTALL, Action.UNINSTALL)


_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> timedelta | None:
    """Parse a helm/Go style duration such as ``120s``, ``5m`` or ``1h30m``.

    Bare numbers (or numeric strings) are taken as seconds. Empty values
    mean "unset" and return None, so an explicit zero stays distinguishable.

    Raises:
        ValueError: If the value is not a recognizable duration
    """
    if value is None or isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, int | float):
        return timedelta(seconds=value)

    text = str(value).strip()
    if not text:
        return None
    try:
        return timedelta(seconds=float(text))
    except (ValueError, OverflowError):
        pass

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * seconds)


def format_duration(value: timedelta) -> str:
    """Render a timedelta the way helm expects ``--timeout`` values.

    Fractions of a millisecond round up, so a positive duration never
    renders as zero.
    """
    microseconds = value // timedelta(microseconds=1)
    if microseconds % 1_000_000 == 0:
        return f"{microseconds // 1_000_000}s"
    return f"{-(-microseconds // 1000)}ms"


class BuildHints(BaseModel):
    """Metadata of the running build used to fill in unset parameters."""

    model_config = ConfigDict(frozen=True)

    git_name: str = ""
    app_label: str = ""
    build_version: str = ""
    release_target_name: str = ""
    release_action: str = ""


class ReleaseParams(BaseModel):
    """Parameters of a single release invocation.

    Field aliases match the keys pipeline authors write in their manifests.
    Unknown keys are ignored.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    action: str = ""
    chart: str = ""
    app_version: str = Field(default="", alias="appVersion")
    version: str = ""
    release_name: str = Field(default="", alias="release")
    namespace: str = ""
    credentials: str = ""
    repository_url: str = Field(default="", alias="repoUrl")
    repository_directory: str = Field(default="", alias="repoDir")
    repository_charts_subdirectory: str = Field(default="", alias="repoChartsSubdir")
    repository_branch: str = Field(default="", alias="repoBranch")
    helm_subdirectory: str = Field(default="", alias="helmSubdir")
    kind_host: str = Field(default="", alias="kindHost")
    timeout: timedelta | None = None
    values: str = ""
    force: bool = False
    follow_logs: bool = Field(default=False, alias="followLogs")
    bucket: str | None = None
    label_selector_override: str | None = Field(default=None, alias="labelSelector")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # `key:` without a value in YAML means "not set"
        if isinstance(data, Mapping):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> timedelta | None:
        return parse_duration(value)

    # =========================================================================
    # Defaulting
    # =========================================================================

    def with_defaults(self, hints: BuildHints) -> ReleaseParams:
        """Return a copy with every unset field filled in.

        Set fields are never overwritten, so applying this twice yields
        the same result as applying it once.
        """
        c = ReleaseConstants
        updates: dict[str, Any] = {}

        def default(field: str, *candidates: str) -> None:
            if getattr(self, field):
                return
            for candidate in candidates:
                if candidate:
                    updates[field] = candidate
                    return

        default("chart", hints.app_label, hints.git_name)
        default("app_version", hints.build_version)
        default("version", hints.build_version)
        default("kind_host", c.DEFAULT_KIND_HOST)
        default("helm_subdirectory", c.DEFAULT_HELM_SUBDIRECTORY)
        default("repository_directory", c.DEFAULT_REPOSITORY_DIRECTORY)
        default(
            "repository_charts_subdirectory", c.DEFAULT_REPOSITORY_CHARTS_SUBDIRECTORY
        )
        default("repository_url", c.DEFAULT_REPOSITORY_URL)
        default("repository_branch", c.DEFAULT_REPOSITORY_BRANCH)
        default("action", hints.release_action)
        if hints.release_target_name:
            default("credentials", c.CREDENTIALS_PREFIX + hints.release_target_name)
        if self.timeout is None:
            updates["timeout"] = c.DEFAULT_TIMEOUT

        # Release name follows the resolved chart name
        default("release_name", updates.get("chart", self.chart))

        return self.model_copy(update=updates)

    # =========================================================================
    # Derived values
    # =========================================================================

    @property
    def chart_path(self) -> Path:
        """Chart source directory relative to the workspace."""
        return Path(self.helm_subdirectory) / self.chart

    @property
    def artifact_name(self) -> str:
        """Filename `helm package` produces for this chart version."""
        return f"{self.chart}-{self.version}.tgz"

    @property
    def label_selector(self) -> str:
        """Selector matching the pods of the release."""
        if self.label_selector_override:
            return self.label_selector_override
        return f"{ReleaseConstants.INSTANCE_LABEL}={self.release_name}"

    @property
    def helm_timeout(self) -> str:
        timeout = self.timeout
        if timeout is None:
            timeout = ReleaseConstants.DEFAULT_TIMEOUT
        return format_duration(timeout)

    @property
    def namespace_or_none(self) -> str | None:
        return self.namespace or None

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_for(self, action: Action) -> None:
        """Check that the fields the action reads are present.

        Raises:
            ConfigurationError: If a required field is missing or invalid
        """
        missing: list[str] = []
        if action is not Action.UNINSTALL and not self.chart:
            missing.append("chart")
        if action.requires_cluster and not self.release_name:
            missing.append("release")
        if action not in (Action.LINT, Action.UNINSTALL) and not self.version:
            missing.append("version")
        if action is Action.PACKAGE and not self.app_version:
            missing.append("appVersion")
        needs_credentials = action.requires_cluster or (
            action is Action.PUBLISH and bool(self.bucket)
        )
        if needs_credentials and not self.credentials:
            missing.append("credentials")

        if missing:
            raise ConfigurationError(
                f"Missing required parameters for action '{action.value}': "
                + ", ".join(missing),
                details="Set them in the stage's custom properties or make sure "
                "the build provides the corresponding defaults.",
            )

        if self.timeout is not None and self.timeout <= timedelta(0):
            raise ConfigurationError(
                f"Timeout must be a positive duration, got {self.timeout}"
            )


def resolve_params(
    raw: str | Mapping[str, Any] | None, hints: BuildHints
) -> ReleaseParams:
    """Parse the custom properties document and apply defaults.

    Args:
        raw: YAML document, or an already parsed mapping
        hints: Metadata of the running build

    Returns:
        Fully defaulted parameters

    Raises:
        ConfigurationError: If the document is not a valid YAML mapping of
                            recognized parameter types
    """
    logger.info("Unmarshalling parameters / custom properties...")
    if isinstance(raw, str):
        try:
            data = load_yaml(raw)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                "Failed unmarshalling parameters", details=str(e)
            ) from e
    else:
        data = raw

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            "Failed unmarshalling parameters",
            details=f"Expected a mapping of parameters, got {type(data).__name__}",
        )

    try:
        params = ReleaseParams.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError("Invalid parameters", details=str(e)) from e

    logger.info("Setting defaults for parameters that are not set in the manifest...")
    return params.with_defaults(hints)
