"""Per-scrape retrieval of Marathon state."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import replace
from typing import Any, Callable, Iterable

from marathon_exporter.marathon import (
    DEFAULT_TIMEOUT,
    App,
    MarathonClient,
    MarathonEndpoint,
)

logger = logging.getLogger(__name__)


class MarathonScraper:
    """Fetch the current set of apps and their tasks.

    Nothing is cached and nothing is retried: every call opens a fresh
    client, and any upstream error propagates to the caller so the
    scrape is reported as failed right away.
    """

    def __init__(
        self,
        endpoint: MarathonEndpoint,
        timeout: float = DEFAULT_TIMEOUT,
        verify_tls: bool = True,
        embed_tasks: bool = True,
        exclude_groups: Iterable[str] = (),
        client_factory: Callable[..., Any] = MarathonClient,
    ):
        """Initialize the scraper.

        Args:
            endpoint: Marathon endpoint and credentials.
            timeout: Per-request timeout; bounds how long a scrape can block.
            verify_tls: Verify Marathon's TLS certificate.
            embed_tasks: Fetch tasks inline with apps (one request). When
                False, tasks come from a single /v2/tasks request instead.
            exclude_groups: App id prefixes to drop, e.g. ``/system``.
            client_factory: Builds an async-context-manager client.
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.embed_tasks = embed_tasks
        self.exclude_groups = tuple(_group_prefix(g) for g in exclude_groups if g)
        self._client_factory = client_factory

    def fetch_state(self) -> list[App]:
        """Fetch apps synchronously on a private event loop.

        Must not be called from a thread that is already running an event
        loop; the metrics server calls it from executor threads.
        """
        return asyncio.run(self.fetch_state_async())

    async def fetch_state_async(self) -> list[App]:
        """Fetch apps (with tasks attached), sorted by app id.

        Raises:
            MarathonError: On any upstream failure.
        """
        async with self._client_factory(
            self.endpoint,
            timeout=self.timeout,
            verify_tls=self.verify_tls,
        ) as client:
            apps = await client.apps(embed_tasks=self.embed_tasks)
            if not self.embed_tasks:
                tasks_by_app = defaultdict(list)
                for task in await client.tasks():
                    tasks_by_app[task.app_id].append(task)
                apps = [replace(app, tasks=tuple(tasks_by_app.get(app.id, ()))) for app in apps]

        apps = [app for app in apps if not self._is_excluded(app)]
        apps.sort(key=lambda app: app.id)
        logger.debug(f"Fetched {len(apps)} apps from Marathon")
        return apps

    def _is_excluded(self, app: App) -> bool:
        return any(
            app.id == prefix.rstrip("/") or app.id.startswith(prefix)
            for prefix in self.exclude_groups
        )


def _group_prefix(group: str) -> str:
    """Normalize ``system`` or ``/system/`` to ``/system/``."""
    return "/" + group.strip("/") + "/"
