"""marathon-exporter configuration.

Configuration is read once at process start from command-line options
(each with an environment variable fallback) and is fixed for the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class ConfigError(ValueError):
    """Raised for configuration the exporter cannot start with."""


DEFAULT_LISTEN_ADDRESS = ":9088"
DEFAULT_TELEMETRY_PATH = "/metrics"
DEFAULT_MARATHON_URI = "http://marathon.mesos:8080"
DEFAULT_NAMESPACE = "marathon"


@dataclass
class WebConfig:
    """Inbound HTTP configuration."""

    listen_address: str = DEFAULT_LISTEN_ADDRESS
    telemetry_path: str = DEFAULT_TELEMETRY_PATH


@dataclass
class MarathonConfig:
    """Outbound Marathon configuration."""

    uri: str = DEFAULT_MARATHON_URI
    timeout: float = 10.0
    retry_interval: float = 10.0
    verify_tls: bool = True
    embed_tasks: bool = True


@dataclass
class ExporterConfig:
    """Root configuration for the exporter."""

    web: WebConfig = field(default_factory=WebConfig)
    marathon: MarathonConfig = field(default_factory=MarathonConfig)
    app_labels: tuple[str, ...] = ()
    exclude_groups: tuple[str, ...] = ()
    namespace: str = DEFAULT_NAMESPACE

    def validate(self) -> None:
        """Check everything that can be checked before connecting.

        Raises:
            ConfigError: On the first invalid setting found.
        """
        parse_listen_address(self.web.listen_address)

        path = self.web.telemetry_path
        if not path.startswith("/") or path == "/":
            raise ConfigError(
                f"Telemetry path must start with '/' and not be '/': {path!r}"
            )

        if self.marathon.timeout <= 0:
            raise ConfigError("Marathon timeout must be positive")
        if self.marathon.retry_interval < 0:
            raise ConfigError("Marathon retry interval must not be negative")


def parse_csv(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated option, dropping blanks and duplicates.

    Args:
        value: e.g. ``"team, env,,team"``.

    Returns:
        ``("team", "env")``; order of first appearance is kept.
    """
    if not value:
        return ()

    items: list[str] = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in items:
            items.append(item)
    return tuple(items)


def parse_listen_address(address: str) -> tuple[str | None, int]:
    """Parse ``[host]:port`` into a host (None for all interfaces) and port.

    Raises:
        ConfigError: If the port is missing or out of range.
    """
    host, sep, port_str = address.rpartition(":")
    if not sep:
        raise ConfigError(f"Listen address must look like [host]:port: {address!r}")

    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"Invalid port in listen address {address!r}") from None

    if not 0 < port < 65536:
        raise ConfigError(f"Port out of range in listen address {address!r}")

    host = host.strip("[]")
    return (host or None), port
