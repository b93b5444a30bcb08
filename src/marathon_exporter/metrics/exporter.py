"""Prometheus collector translating Marathon state into metrics.

Each call to ``collect()`` performs one live scrape of Marathon. App
metrics are only emitted when the whole scrape succeeded; the exporter's
own metrics are emitted every time.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterator, Protocol

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from marathon_exporter.config import DEFAULT_NAMESPACE
from marathon_exporter.marathon import App
from marathon_exporter.metrics.labels import LabelExtractor

logger = logging.getLogger(__name__)

# Task states counted as staged (accepted by Marathon but not yet running)
STAGED_STATES = frozenset({"TASK_STAGING", "TASK_STAGED", "TASK_STARTING"})
RUNNING_STATE = "TASK_RUNNING"

# name -> help text; values come from the App definition
APP_METRICS = {
    "app_instances_desired": "Number of instances the app is configured to run",
    "app_instances_running": "Number of running instances reported by Marathon",
    "app_cpus": "CPU shares requested per instance",
    "app_mem_megabytes": "Memory requested per instance in megabytes",
    "app_disk_megabytes": "Disk requested per instance in megabytes",
    "app_gpus": "GPUs requested per instance",
    "app_deployments": "Number of deployments in progress for the app",
}

# name -> help text; values are counted from the app's tasks
TASK_METRICS = {
    "app_tasks_running": "Number of the app's tasks in TASK_RUNNING",
    "app_tasks_staged": "Number of the app's tasks being staged or started",
    "app_tasks_healthy": "Number of the app's tasks passing all health checks",
    "app_tasks_unhealthy": "Number of the app's tasks failing a health check",
    "app_task_oldest_start_timestamp_seconds": "Start time of the app's oldest started task, in epoch seconds",
}


class Scraper(Protocol):
    def fetch_state(self) -> list[App]: ...


class MarathonExporter(Collector):
    """Custom collector registered with a ``CollectorRegistry``.

    Safe to call concurrently: per-scrape data stays local to the call and
    the two process-lifetime counters are updated under a lock.
    """

    def __init__(
        self,
        scraper: Scraper,
        labels: LabelExtractor | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """Initialize the exporter.

        Args:
            scraper: Source of Marathon apps for each scrape.
            labels: Configured app-label columns (none by default).
            namespace: Prefix for every metric name; empty for none.
            timer: Monotonic timer used for scrape duration.
        """
        self.scraper = scraper
        self.labels = labels or LabelExtractor()
        self.namespace = namespace
        self._timer = timer

        self._lock = threading.Lock()
        self._scrapes_total = 0
        self._scrape_errors_total = 0

        self._app_label_names = ["app", *self.labels.label_names]

    def _name(self, name: str) -> str:
        return f"{self.namespace}_{name}" if self.namespace else name

    @property
    def scrape_errors_total(self) -> int:
        with self._lock:
            return self._scrape_errors_total

    @property
    def scrapes_total(self) -> int:
        with self._lock:
            return self._scrapes_total

    # -------------------------------------------------------------------------
    # Collector protocol
    # -------------------------------------------------------------------------

    def describe(self) -> Iterator[Metric]:
        """Yield every family this collector can produce, without scraping."""
        yield from self._new_app_families().values()
        yield from self._exporter_families(success=False, duration=0.0, scrapes=0, errors=0)

    def collect(self) -> Iterator[Metric]:
        """Scrape Marathon once and yield the resulting metric families."""
        start = self._timer()
        try:
            apps = self.scraper.fetch_state()
            families = self._app_families(apps)
        except Exception as e:
            logger.warning(f"Error scraping Marathon: {e}")
            families = None
        duration = self._timer() - start

        success = families is not None
        with self._lock:
            self._scrapes_total += 1
            if not success:
                self._scrape_errors_total += 1
            scrapes = self._scrapes_total
            errors = self._scrape_errors_total

        if success:
            yield from families
        yield from self._exporter_families(success, duration, scrapes, errors)

    # -------------------------------------------------------------------------
    # Transformation
    # -------------------------------------------------------------------------

    def _new_app_families(self) -> dict[str, GaugeMetricFamily]:
        return {
            name: GaugeMetricFamily(
                self._name(name), documentation, labels=self._app_label_names
            )
            for name, documentation in {**APP_METRICS, **TASK_METRICS}.items()
        }

    def _app_families(self, apps: list[App]) -> list[Metric]:
        """Build all app families before anything is exposed."""
        families = self._new_app_families()

        for app in sorted(apps, key=lambda a: a.id):
            label_values = [app.id, *self.labels.extract(app)]
            for name, value in self.app_values(app).items():
                families[name].add_metric(label_values, float(value))

        return list(families.values())

    @staticmethod
    def app_values(app: App) -> dict[str, float]:
        """Metric values for one app, keyed by unprefixed metric name.

        Args:
            app: App with its tasks attached.
        """
        running = staged = healthy = unhealthy = 0
        oldest_start: float | None = None

        for task in app.tasks:
            if task.state == RUNNING_STATE:
                running += 1
            elif task.state in STAGED_STATES:
                staged += 1

            if task.is_healthy:
                healthy += 1
            elif task.is_unhealthy:
                unhealthy += 1

            if task.started_at is not None:
                started = task.started_at.timestamp()
                if oldest_start is None or started < oldest_start:
                    oldest_start = started

        return {
            "app_instances_desired": app.instances,
            "app_instances_running": app.tasks_running,
            "app_cpus": app.cpus,
            "app_mem_megabytes": app.mem,
            "app_disk_megabytes": app.disk,
            "app_gpus": app.gpus,
            "app_deployments": app.deployments,
            "app_tasks_running": running,
            "app_tasks_staged": staged,
            "app_tasks_healthy": healthy,
            "app_tasks_unhealthy": unhealthy,
            "app_task_oldest_start_timestamp_seconds": oldest_start or 0.0,
        }

    def _exporter_families(
        self,
        success: bool,
        duration: float,
        scrapes: int,
        errors: int,
    ) -> list[Metric]:
        return [
            GaugeMetricFamily(
                self._name("exporter_last_scrape_success"),
                "Whether the last scrape of Marathon succeeded (1) or failed (0)",
                value=1 if success else 0,
            ),
            GaugeMetricFamily(
                self._name("exporter_last_scrape_duration_seconds"),
                "Duration of the last scrape of Marathon in seconds",
                value=duration,
            ),
            CounterMetricFamily(
                self._name("exporter_scrape_errors"),
                "Total number of failed scrapes of Marathon",
                value=errors,
            ),
            CounterMetricFamily(
                self._name("exporter_scrapes"),
                "Total number of scrapes of Marathon",
                value=scrapes,
            ),
        ]
