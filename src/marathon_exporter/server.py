"""HTTP endpoint serving the metrics registry."""

from __future__ import annotations

import asyncio
import logging

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from prometheus_client.registry import Collector

logger = logging.getLogger(__name__)

INDEX_TEMPLATE = """<html>
<head><title>Marathon Exporter</title></head>
<body>
<h1>Marathon Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


def build_registry(exporter: Collector, process_metrics: bool = True) -> CollectorRegistry:
    """Create a registry holding the exporter (and process/platform metrics).

    Args:
        exporter: The Marathon collector.
        process_metrics: Also register process and platform collectors.
    """
    registry = CollectorRegistry()
    registry.register(exporter)
    if process_metrics:
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
    return registry


def create_app(registry: CollectorRegistry, metrics_path: str = "/metrics") -> web.Application:
    """Build the aiohttp application.

    Rendering runs in the default executor: collecting performs a blocking
    Marathon scrape, and concurrent scrapes each get their own thread.

    Args:
        registry: Registry rendered on every metrics request.
        metrics_path: Path serving the text exposition format.
    """
    index = INDEX_TEMPLATE.format(metrics_path=metrics_path)

    async def handle_metrics(request: web.Request) -> web.Response:
        """Serve the current metric snapshot."""
        loop = asyncio.get_running_loop()
        body = await loop.run_in_executor(None, generate_latest, registry)
        return web.Response(body=body, headers={"Content-Type": CONTENT_TYPE_LATEST})

    async def handle_index(request: web.Request) -> web.Response:
        """Landing page linking to the metrics path."""
        return web.Response(text=index, content_type="text/html")

    app = web.Application()
    app.router.add_get(metrics_path, handle_metrics)
    app.router.add_get("/", handle_index)
    return app


async def run_server(app: web.Application, host: str | None, port: int) -> None:
    """Serve ``app`` until cancelled.

    Args:
        app: The aiohttp application.
        host: Interface to bind; None binds all interfaces.
        port: Port to listen on.
    """
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Starting Server: {host or ''}:{port}")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
