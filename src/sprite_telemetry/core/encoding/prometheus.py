"""Prometheus exposition of sandbox lifecycle metrics and telemetry totals.

Two kinds of series share one registry:

* lifecycle counters, gauges and histograms recorded by whoever creates,
  stops and checkpoints sandboxes;
* per-sandbox aggregate families, read from the aggregate store at scrape
  time so that every scrape reflects one consistent snapshot.
"""

import logging
from collections.abc import Iterator

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    Metric,
)
from prometheus_client.registry import Collector

from sprite_telemetry.core.models import SandboxStatus
from sprite_telemetry.core.ports import AggregateStorePort

logger = logging.getLogger(__name__)

PROMETHEUS_CONTENT_TYPE = CONTENT_TYPE_LATEST

# Durations are reported in milliseconds and exposed in seconds.
_MS_PER_SECOND = 1000.0


class AggregateCollector(Collector):
    """Expose every aggregate record as labelled metric families.

    Args:
        store: Aggregate store read on each scrape.
    """

    def __init__(self, store: AggregateStorePort) -> None:
        self._store = store

    def collect(self) -> Iterator[Metric]:
        tokens = CounterMetricFamily(
            "sprite_tokens", "Tokens used per sandbox", labels=["sprite", "type"]
        )
        cost = CounterMetricFamily(
            "sprite_cost_usd", "Accumulated cost per sandbox in USD", labels=["sprite"]
        )
        sessions = CounterMetricFamily(
            "sprite_sessions", "Agent sessions per sandbox", labels=["sprite"]
        )
        commits = CounterMetricFamily(
            "sprite_commits", "Commits per sandbox", labels=["sprite"]
        )
        pull_requests = CounterMetricFamily(
            "sprite_pull_requests", "Pull requests per sandbox", labels=["sprite"]
        )
        lines = CounterMetricFamily(
            "sprite_lines_of_code",
            "Lines of code changed per sandbox",
            labels=["sprite", "type"],
        )
        active = GaugeMetricFamily(
            "sprite_telemetry_active",
            "1 if the sandbox has reported telemetry",
            labels=["sprite"],
        )
        last_updated = GaugeMetricFamily(
            "sprite_telemetry_last_updated_timestamp_seconds",
            "Unix time of the last telemetry update per sandbox",
            labels=["sprite"],
        )

        for record in self._store.get_all():
            name = record.sandbox
            tokens.add_metric([name, "input"], record.input_tokens)
            tokens.add_metric([name, "output"], record.output_tokens)
            tokens.add_metric([name, "cache_read"], record.cache_read_tokens)
            tokens.add_metric([name, "cache_creation"], record.cache_creation_tokens)
            cost.add_metric([name], record.cost_usd)
            sessions.add_metric([name], record.sessions)
            commits.add_metric([name], record.commits)
            pull_requests.add_metric([name], record.pull_requests)
            lines.add_metric([name, "added"], record.lines_added)
            lines.add_metric([name, "removed"], record.lines_removed)
            active.add_metric(
                [name], 1.0 if record.status is SandboxStatus.ACTIVE else 0.0
            )
            if record.last_updated is not None:
                last_updated.add_metric([name], record.last_updated.timestamp())

        yield from (
            tokens,
            cost,
            sessions,
            commits,
            pull_requests,
            lines,
            active,
            last_updated,
        )


class LifecycleMetrics:
    """Sandbox lifecycle counters, gauges and histograms.

    Recording methods take dotted event names (``sprites.created``,
    ``sprites.checkpoint.duration`` ...). Names without a matching series
    are logged and otherwise ignored.

    Args:
        registry: Registry to create the series in. A private registry is
            created when omitted, so several instances never collide.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.sandboxes_total = Counter(
            "automaker_sandboxes_total",
            "Total sandboxes created",
            registry=self.registry,
        )
        self.sandboxes_active = Gauge(
            "automaker_sandboxes_active",
            "Currently active sandboxes",
            registry=self.registry,
        )
        self.checkpoints_total = Counter(
            "automaker_checkpoints_total",
            "Total checkpoints created",
            registry=self.registry,
        )
        self.checkpoint_duration = Histogram(
            "automaker_checkpoint_duration_seconds",
            "Checkpoint creation duration",
            registry=self.registry,
        )
        self.exec_duration = Histogram(
            "automaker_exec_duration_seconds",
            "Command execution duration",
            registry=self.registry,
        )

    def record_counter(self, name: str, value: float = 1.0) -> None:
        """Record a cumulative lifecycle count."""
        logger.debug("[Metric:COUNTER] %s: +%s", name, value)
        if name == "sprites.created":
            self.sandboxes_total.inc(value)
            self.sandboxes_active.inc(value)
        elif name in ("sprites.deleted", "sprites.shutdown"):
            self.sandboxes_active.dec(value)
        elif name == "sprites.woken":
            self.sandboxes_active.inc(value)
        elif name == "sprites.checkpoint.created":
            self.checkpoints_total.inc(value)

    def record_gauge(self, name: str, value: float) -> None:
        """Record a point-in-time lifecycle value."""
        logger.debug("[Metric:GAUGE] %s: %s", name, value)
        if name == "sandboxes.active":
            self.sandboxes_active.set(value)

    def record_histogram(self, name: str, value_ms: float) -> None:
        """Record a duration given in milliseconds."""
        logger.debug("[Metric:HISTOGRAM] %s: %s", name, value_ms)
        seconds = value_ms / _MS_PER_SECOND
        if name == "sprites.checkpoint.duration":
            self.checkpoint_duration.observe(seconds)
        elif name == "sprites.exec.duration":
            self.exec_duration.observe(seconds)

    def record_error(self, name: str, error: BaseException) -> None:
        """Log a lifecycle operation failure."""
        logger.error("[Metric:ERROR] %s: %s", name, error, exc_info=error)


def encode_metrics(registry: CollectorRegistry) -> str:
    """Render every series in ``registry`` in Prometheus text format."""
    return generate_latest(registry).decode("utf-8")
