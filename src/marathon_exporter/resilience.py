"""Startup connection handling.

Implements the block-until-ready policy used before serving metrics:
- ConnectionState: Disconnected -> Connecting -> Connected
- MarathonConnector: fixed-interval, unbounded retry of the Marathon handshake
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from marathon_exporter.marathon import (
    DEFAULT_TIMEOUT,
    MarathonClient,
    MarathonEndpoint,
    MarathonError,
    MarathonInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL = 10.0


# =============================================================================
# ConnectionState
# =============================================================================


class ConnectionState(Enum):
    """Connector states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# =============================================================================
# MarathonConnector
# =============================================================================


class MarathonConnector:
    """Retry the Marathon handshake until it succeeds.

    Every attempt opens a client and calls ``info()``, so success means the
    API answered with valid JSON and accepted the credentials, not merely
    that the port was open. Failures are retried forever after a fixed
    ``retry_interval``; there is no backoff growth, jitter or attempt cap.
    """

    def __init__(
        self,
        endpoint: MarathonEndpoint,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        verify_tls: bool = True,
        client_factory: Callable[..., Any] = MarathonClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the connector.

        Args:
            endpoint: Marathon endpoint and credentials.
            retry_interval: Seconds to wait between failed attempts.
            timeout: Per-attempt connect and request timeout in seconds.
            verify_tls: Verify Marathon's TLS certificate.
            client_factory: Builds an async-context-manager client.
            sleep: Awaitable sleep, replaceable in tests.
        """
        self.endpoint = endpoint
        self.retry_interval = retry_interval
        self.timeout = timeout
        self.verify_tls = verify_tls
        self._client_factory = client_factory
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self.info: MarathonInfo | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        """Number of handshake attempts made so far."""
        return self._attempts

    async def connect_once(self) -> MarathonInfo:
        """Make a single handshake attempt.

        Returns:
            MarathonInfo reported by the server.

        Raises:
            MarathonError: If the attempt fails.
        """
        self._state = ConnectionState.CONNECTING
        self._attempts += 1

        logger.debug(
            f"Connecting to Marathon: {self.endpoint.redacted()} | "
            f"username={self.endpoint.username} | "
            f"len(password)={len(self.endpoint.password)}"
        )

        try:
            async with self._client_factory(
                self.endpoint,
                timeout=self.timeout,
                verify_tls=self.verify_tls,
            ) as client:
                info = await client.info()
        except MarathonError:
            self._state = ConnectionState.DISCONNECTED
            raise

        self._state = ConnectionState.CONNECTED
        self.info = info
        logger.debug(f"Connected to Marathon! Name={info.name}, Version={info.version}")
        return info

    async def establish(self) -> MarathonInfo:
        """Block until Marathon accepts a handshake.

        Returns:
            MarathonInfo from the successful attempt.
        """
        while True:
            try:
                return await self.connect_once()
            except MarathonError as e:
                logger.debug(f"Problem connecting to Marathon: {e}")
                logger.info(
                    f"Couldn't connect to Marathon at {self.endpoint.redacted()}! "
                    f"Trying again in {self.retry_interval:g}s"
                )
                await self._sleep(self.retry_interval)
