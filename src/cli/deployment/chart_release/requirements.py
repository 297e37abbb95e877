"""Chart dependency declarations.

Before packaging, the repositories of every declared dependency have to be
known to helm. They are declared in ``requirements.yaml`` (Helm 2 charts) or
in the ``dependencies`` list of ``Chart.yaml`` (Helm 3 charts).
"""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from .constants import ReleaseConstants
from .errors import ConfigurationError
from .params import load_yaml


class ChartDependency(BaseModel):
    """A single dependency entry of a chart manifest."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: str = ""
    version: str = ""
    repository: str = ""
    alias: str = ""


class _DependencyManifest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dependencies: list[ChartDependency] = []


def read_dependencies(chart_path: Path) -> list[ChartDependency]:
    """Read the dependencies declared for a chart.

    ``requirements.yaml`` takes precedence over ``Chart.yaml``. A chart
    without either manifest has no dependencies.

    Args:
        chart_path: Chart source directory

    Returns:
        Declared dependencies, in manifest order

    Raises:
        ConfigurationError: If a manifest exists but cannot be read or parsed
    """
    for filename in (ReleaseConstants.REQUIREMENTS_FILE, ReleaseConstants.CHART_FILE):
        manifest = chart_path / filename
        if manifest.is_file():
            return _load_manifest(manifest)

    logger.debug("No dependency manifest found in {}", chart_path)
    return []


def _load_manifest(manifest: Path) -> list[ChartDependency]:
    try:
        data = load_yaml(manifest.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed reading dependency manifest at {manifest}", details=str(e)
        ) from e

    try:
        parsed = _DependencyManifest.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(
            f"Failed unmarshalling dependency manifest at {manifest}", details=str(e)
        ) from e
    return parsed.dependencies
