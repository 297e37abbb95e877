import sys
from collections.abc import Iterator

import pytest
from loguru import logger

from src.cli.deployment.shell_commands.types import CommandResult


@pytest.fixture(autouse=True)
def _reset_loguru() -> Iterator[None]:
    """Restore loguru's default sink after tests that reconfigure logging."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def ok_result() -> CommandResult:
    return CommandResult(success=True, stdout="", stderr="", returncode=0)


@pytest.fixture
def failed_result() -> CommandResult:
    return CommandResult(
        success=False, stdout="", stderr="Error: boom", returncode=1, cmd=["helm"]
    )
