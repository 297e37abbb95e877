"""Git-backed chart repository working tree.

Charts are published by copying the packaged archive into a checkout of the
chart repository, regenerating its index and pushing the result. Purging
pre-release versions works on the same checkout.
"""

from __future__ import annotations

import glob
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .constants import ReleaseConstants
from .errors import ReleaseError, ensure_success

if TYPE_CHECKING:
    from ..shell_commands import ShellCommands


class ChartRepository:
    """A chart repository checkout inside the build workspace."""

    def __init__(
        self,
        commands: ShellCommands,
        root: Path,
        charts_subdirectory: str,
        *,
        constants: ReleaseConstants | None = None,
    ) -> None:
        """Initialize the chart repository.

        Args:
            commands: Shell command executor
            root: Repository checkout directory
            charts_subdirectory: Directory inside the checkout holding archives
            constants: Optional release constants
        """
        self.commands = commands
        self.root = root
        self.charts_subdirectory = charts_subdirectory
        self.constants = constants or ReleaseConstants()

    @property
    def charts_dir(self) -> Path:
        return self.root / self.charts_subdirectory

    def ensure_charts_dir(self) -> Path:
        try:
            self.charts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReleaseError(
                f"Failed creating directory {self.charts_dir}", details=str(e)
            ) from e
        return self.charts_dir

    def add_artifact(self, artifact: Path) -> Path:
        """Copy a packaged chart into the repository.

        Raises:
            ReleaseError: If the archive is missing or cannot be copied
        """
        if not artifact.is_file():
            raise ReleaseError(
                f"Chart archive {artifact.name} not found",
                details="Run the package action before publishing.",
            )
        target = self.ensure_charts_dir() / artifact.name
        try:
            shutil.copy2(artifact, target)
        except OSError as e:
            raise ReleaseError(
                f"Failed copying {artifact.name} to {self.charts_dir}", details=str(e)
            ) from e
        return target

    def find_prerelease_artifacts(self, chart: str, version: str) -> list[Path]:
        """Find archives of pre-release builds of a chart version.

        Matches ``<chart>-<version>-*.tgz``, e.g. ``web-1.2.0-beta.1.tgz`` for
        version ``1.2.0``.
        """
        pattern = f"{glob.escape(chart)}-{glob.escape(version)}-*.tgz"
        logger.info("glob: {}", Path(self.charts_subdirectory) / pattern)
        return sorted(self.charts_dir.glob(pattern))

    def remove(self, files: list[Path]) -> None:
        for path in files:
            logger.info("Removing {}", path.relative_to(self.root))
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise ReleaseError(f"Failed removing {path}", details=str(e)) from e

    def reindex(self, url: str) -> None:
        logger.info("Generating/updating index file for repository {}...", url)
        ensure_success(
            self.commands.helm.repo_index(url, self.root),
            f"Generating index for repository {url}",
        )

    def commit_and_push(self, message: str, branch: str) -> None:
        """Commit every change, even when there is none, and push the branch."""
        logger.info("Pushing changes to repository...")
        git = self.commands.git
        for result in git.config_identity(
            self.constants.GIT_USER_EMAIL, self.constants.GIT_USER_NAME
        ):
            ensure_success(result, "Configuring git identity")
        ensure_success(git.status(self.root), "Showing git status")
        ensure_success(git.add_all(self.root), "Staging repository changes")
        ensure_success(
            git.commit(self.root, message, allow_empty=True), "Committing changes"
        )
        ensure_success(git.push(self.root, branch), f"Pushing branch {branch}")
