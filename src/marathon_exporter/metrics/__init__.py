"""Metrics collection from Marathon."""

from marathon_exporter.metrics.exporter import (
    APP_METRICS,
    TASK_METRICS,
    MarathonExporter,
)
from marathon_exporter.metrics.labels import LabelExtractor, sanitize_label_name
from marathon_exporter.metrics.scraper import MarathonScraper

__all__ = [
    "APP_METRICS",
    "LabelExtractor",
    "MarathonExporter",
    "MarathonScraper",
    "TASK_METRICS",
    "sanitize_label_name",
]
