"""Client for the ephemeral kind host used by the test action.

The kind host runs as a pipeline service next to the build and exposes two
HTTP endpoints on port 10080: one answering once the cluster is up, and one
serving the cluster's kube config.
"""

from __future__ import annotations

import os
import re
import time
from collections.abc import Callable
from pathlib import Path
from types import TracebackType

import httpx
from loguru import logger

from .constants import ReleaseConstants
from .errors import ReleaseError

_SERVER_PATTERN = re.compile(r"server:\s+(http|https)://([^:]+):(\d+)")


class KindHost:
    """Readiness polling and kube config retrieval for a kind host."""

    def __init__(
        self,
        host: str,
        *,
        port: int = ReleaseConstants.KIND_PORT,
        client: httpx.Client | None = None,
        poll_interval: float = ReleaseConstants.KIND_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the kind host client.

        Args:
            host: Hostname the kind service is reachable under
            port: Port of the kind host HTTP endpoints
            client: HTTP client to use; one with a 1 second timeout is created
                    and owned by this instance if None
            poll_interval: Seconds to wait between readiness attempts
            sleep: Sleep function, injectable for tests
        """
        self.host = host
        self.port = port
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=ReleaseConstants.KIND_REQUEST_TIMEOUT_SECONDS
        )
        self._poll_interval = poll_interval
        self._sleep = sleep

    def __enter__(self) -> KindHost:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def url(self, path: str) -> str:
        return f"http://{self.host}:{self.port}{path}"

    def wait_until_ready(self) -> int:
        """Block until the readiness endpoint answers.

        Any HTTP response counts as ready; only transport errors are retried.
        There is no upper bound on the number of attempts.

        Returns:
            Number of attempts it took
        """
        url = self.url(ReleaseConstants.KIND_READY_PATH)
        attempts = 0
        while True:
            attempts += 1
            try:
                self._client.get(url)
                return attempts
            except httpx.TransportError as e:
                logger.debug("Kind host not ready yet ({}): {}", url, e)
                self._sleep(self._poll_interval)

    def fetch_kube_config(self) -> str:
        """Download the kube config of the kind cluster.

        Raises:
            ReleaseError: On transport errors or a non-200 response
        """
        url = self.url(ReleaseConstants.KIND_CONFIG_PATH)
        try:
            response = self._client.get(url)
        except httpx.TransportError as e:
            raise ReleaseError(
                f"Failed to retrieve kind config from {url}", details=str(e)
            ) from e
        if response.status_code != httpx.codes.OK:
            raise ReleaseError(
                f"Failed to retrieve kind config from {url}; "
                f"status code {response.status_code}"
            )
        return response.text

    def rewrite_kube_config(self, kube_config: str) -> str:
        """Point the kube config's API server at the kind host name.

        The kind cluster advertises an address that is only valid inside its
        own container; every occurrence of that host and of ``localhost`` is
        replaced with the kind host name.

        Raises:
            ReleaseError: If the config has no server entry
        """
        match = _SERVER_PATTERN.search(kube_config)
        if match is None:
            raise ReleaseError(
                "Failed isolating server in config from "
                f"{self.url(ReleaseConstants.KIND_CONFIG_PATH)}"
            )
        advertised_host = match.group(2)
        kube_config = kube_config.replace(advertised_host, self.host)
        return kube_config.replace("localhost", self.host)

    def prepare_kube_config(self, path: Path) -> Path:
        """Fetch, rewrite and store the kind kube config, readable by owner only.

        Raises:
            ReleaseError: If the config cannot be fetched, parsed or written
        """
        kube_config = self.rewrite_kube_config(self.fetch_kube_config())
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(kube_config)
            path.chmod(0o600)
        except OSError as e:
            raise ReleaseError(f"Failed writing {path}", details=str(e)) from e
        logger.info("Wrote kube config for kind host {} to {}", self.host, path)
        return path
