"""marathon-exporter - Prometheus exporter for Marathon app and task state."""

__version__ = "0.1.0"
