"""marathon-exporter command line entry point.

Usage:
    marathon-exporter [--web.listen-address :9088] [--web.telemetry-path /metrics]
                      [--marathon.uri http://marathon.mesos:8080]
                      [--app.labels team,env] [--app.exclude-groups /system]

Credentials come from user-info in --marathon.uri, or else from the
MARATHON_USERNAME and MARATHON_PASSWORD environment variables.
"""

from __future__ import annotations

import asyncio
import logging

import click

from marathon_exporter import __version__
from marathon_exporter.config import (
    DEFAULT_LISTEN_ADDRESS,
    DEFAULT_MARATHON_URI,
    DEFAULT_TELEMETRY_PATH,
    ExporterConfig,
    MarathonConfig,
    WebConfig,
    parse_csv,
    parse_listen_address,
)
from marathon_exporter.marathon import MarathonEndpoint
from marathon_exporter.metrics import LabelExtractor, MarathonExporter, MarathonScraper
from marathon_exporter.resilience import MarathonConnector
from marathon_exporter.server import build_registry, create_app, run_server

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    # aiohttp logs every request at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


async def serve(config: ExporterConfig, endpoint: MarathonEndpoint, labels: LabelExtractor) -> None:
    """Wait for Marathon, then serve metrics until cancelled."""
    connector = MarathonConnector(
        endpoint,
        retry_interval=config.marathon.retry_interval,
        timeout=config.marathon.timeout,
        verify_tls=config.marathon.verify_tls,
    )
    await connector.establish()

    scraper = MarathonScraper(
        endpoint,
        timeout=config.marathon.timeout,
        verify_tls=config.marathon.verify_tls,
        embed_tasks=config.marathon.embed_tasks,
        exclude_groups=config.exclude_groups,
    )
    exporter = MarathonExporter(scraper, labels=labels, namespace=config.namespace)
    registry = build_registry(exporter)
    app = create_app(registry, config.web.telemetry_path)

    host, port = parse_listen_address(config.web.listen_address)
    await run_server(app, host, port)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--web.listen-address", "listen_address",
    default=DEFAULT_LISTEN_ADDRESS,
    envvar="MARATHON_EXPORTER_LISTEN_ADDRESS",
    show_default=True,
    help="Address to listen on for web interface and telemetry.",
)
@click.option(
    "--web.telemetry-path", "telemetry_path",
    default=DEFAULT_TELEMETRY_PATH,
    envvar="MARATHON_EXPORTER_TELEMETRY_PATH",
    show_default=True,
    help="Path under which to expose metrics.",
)
@click.option(
    "--marathon.uri", "marathon_uri",
    default=DEFAULT_MARATHON_URI,
    envvar="MARATHON_URI",
    show_default=True,
    help="URI of Marathon.",
)
@click.option(
    "--marathon.timeout", "timeout",
    type=float,
    default=10.0,
    envvar="MARATHON_TIMEOUT",
    show_default=True,
    help="Connect and request timeout for Marathon calls, in seconds.",
)
@click.option(
    "--marathon.retry-interval", "retry_interval",
    type=float,
    default=10.0,
    envvar="MARATHON_RETRY_INTERVAL",
    show_default=True,
    help="Seconds between startup connection attempts.",
)
@click.option(
    "--marathon.insecure-skip-verify", "insecure",
    is_flag=True,
    envvar="MARATHON_INSECURE_SKIP_VERIFY",
    help="Do not verify Marathon's TLS certificate.",
)
@click.option(
    "--marathon.no-embed-tasks", "no_embed_tasks",
    is_flag=True,
    envvar="MARATHON_NO_EMBED_TASKS",
    help="Fetch tasks with a separate /v2/tasks call instead of embedding them.",
)
@click.option(
    "--app.labels", "app_labels",
    default="",
    envvar="MARATHON_EXPORTER_APP_LABELS",
    help="Comma-separated Marathon app labels to expose as metric labels.",
)
@click.option(
    "--app.exclude-groups", "exclude_groups",
    default="",
    envvar="MARATHON_EXPORTER_EXCLUDE_GROUPS",
    help="Comma-separated app groups to skip, e.g. /system.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="marathon-exporter")
def cli(
    listen_address: str,
    telemetry_path: str,
    marathon_uri: str,
    timeout: float,
    retry_interval: float,
    insecure: bool,
    no_embed_tasks: bool,
    app_labels: str,
    exclude_groups: str,
    verbose: bool,
) -> None:
    """Expose Marathon app and task state as Prometheus metrics."""
    configure_logging(verbose)

    config = ExporterConfig(
        web=WebConfig(listen_address=listen_address, telemetry_path=telemetry_path),
        marathon=MarathonConfig(
            uri=marathon_uri,
            timeout=timeout,
            retry_interval=retry_interval,
            verify_tls=not insecure,
            embed_tasks=not no_embed_tasks,
        ),
        app_labels=parse_csv(app_labels),
        exclude_groups=parse_csv(exclude_groups),
    )

    try:
        config.validate()
        endpoint = MarathonEndpoint.from_uri(config.marathon.uri)
        labels = LabelExtractor(config.app_labels)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    if not config.marathon.verify_tls:
        logger.warning("TLS certificate verification for Marathon is disabled")

    try:
        asyncio.run(serve(config, endpoint, labels))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    cli()
