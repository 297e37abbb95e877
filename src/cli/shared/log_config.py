"""Log sink configuration.

CI systems either show the raw log or ingest it as JSON lines; the format
is picked by the pipeline through ESTAFETTE_LOG_FORMAT.
"""

import sys
from enum import Enum

from loguru import logger


class LogFormat(str, Enum):
    PLAINTEXT = "plaintext"
    CONSOLE = "console"
    JSON = "json"
    STACKDRIVER = "stackdriver"
    V3 = "v3"

    @property
    def structured(self) -> bool:
        return self in (LogFormat.JSON, LogFormat.STACKDRIVER, LogFormat.V3)


class LogLevel(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


PLAINTEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<level>{message}</level>"
)


def configure_logging(
    level: LogLevel = LogLevel.INFO, log_format: LogFormat = LogFormat.PLAINTEXT
) -> None:
    """Replace loguru's default sink with one matching the pipeline settings."""
    logger.remove()
    if log_format.structured:
        logger.add(sys.stderr, level=level.name, serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level.name,
            format=PLAINTEXT_FORMAT,
            colorize=log_format is LogFormat.CONSOLE,
        )
