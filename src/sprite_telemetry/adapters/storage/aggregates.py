"""In-memory per-sandbox running totals fed by agent metrics."""

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import UTC, datetime

from sprite_telemetry.core.models import (
    AggregateRecord,
    AttributeValue,
    SandboxStatus,
)
from sprite_telemetry.core.notify import ListenerSet
from sprite_telemetry.core.ports import AggregateListener, Unsubscribe

logger = logging.getLogger(__name__)

TOKEN_USAGE = "claude_code.token.usage"
COST_USAGE = "claude_code.cost.usage"
SESSION_COUNT = "claude_code.session.count"
COMMIT_COUNT = "claude_code.commit.count"
PULL_REQUEST_COUNT = "claude_code.pull_request.count"
LINES_OF_CODE_COUNT = "claude_code.lines_of_code.count"

# ``type`` attribute of token usage -> record field. Both cache spellings
# are accepted.
_TOKEN_FIELDS = {
    "input": "input_tokens",
    "output": "output_tokens",
    "cacheread": "cache_read_tokens",
    "cache_read": "cache_read_tokens",
    "cachecreation": "cache_creation_tokens",
    "cache_creation": "cache_creation_tokens",
}

_LINES_FIELDS = {
    "added": "lines_added",
    "removed": "lines_removed",
}

Rule = Callable[[AggregateRecord, float, Mapping[str, AttributeValue]], None]


def _add(record: AggregateRecord, field_name: str, value: float) -> None:
    setattr(record, field_name, getattr(record, field_name) + value)


def _tagged(fields: Mapping[str, str]) -> Rule:
    """Build a rule adding to the field selected by the ``type`` attribute."""

    def rule(
        record: AggregateRecord, value: float, attributes: Mapping[str, AttributeValue]
    ) -> None:
        field_name = fields.get(str(attributes.get("type", "")))
        if field_name is not None:
            _add(record, field_name, value)

    return rule


def _counter(field_name: str) -> Rule:
    """Build a rule adding to a fixed counter field."""

    def rule(
        record: AggregateRecord, value: float, attributes: Mapping[str, AttributeValue]
    ) -> None:
        _add(record, field_name, value)

    return rule


def _cost(
    record: AggregateRecord, value: float, attributes: Mapping[str, AttributeValue]
) -> None:
    record.cost_usd += value


ROUTING: dict[str, Rule] = {
    TOKEN_USAGE: _tagged(_TOKEN_FIELDS),
    COST_USAGE: _cost,
    SESSION_COUNT: _counter("sessions"),
    COMMIT_COUNT: _counter("commits"),
    PULL_REQUEST_COUNT: _counter("pull_requests"),
    LINES_OF_CODE_COUNT: _tagged(_LINES_FIELDS),
}


class MetricAggregator:
    """In-memory implementation of AggregateStorePort.

    Holds one AggregateRecord per sandbox, created on the first metric
    received for it. Counters only ever grow: there is no reset or
    correction path.
    """

    def __init__(self) -> None:
        self._records: dict[str, AggregateRecord] = {}
        self._listeners: ListenerSet[AggregateRecord] = ListenerSet("aggregate")

    def __contains__(self, sandbox: object) -> bool:
        return sandbox in self._records

    def update(
        self,
        sandbox: str,
        metric_name: str,
        value: float,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> AggregateRecord:
        """Fold one metric data point into the sandbox's totals.

        Unknown metric names, negative values and non-finite values still
        mark the sandbox active and refresh ``last_updated``, but change
        no counter. Listeners are notified with the updated record in
        every case.

        Args:
            sandbox: Sandbox identity.
            metric_name: OTLP metric name (case-sensitive).
            value: Data point value.
            attributes: Decoded data point attributes.

        Returns:
            A copy of the updated record.
        """
        record = self._records.get(sandbox)
        if record is None:
            record = AggregateRecord(sandbox=sandbox)
            self._records[sandbox] = record
            logger.info("Tracking telemetry for sandbox %s", sandbox)

        record.status = SandboxStatus.ACTIVE
        record.last_updated = datetime.now(UTC)

        rule = ROUTING.get(metric_name)
        if rule is None:
            logger.debug("Ignoring unknown metric %s from %s", metric_name, sandbox)
        elif not math.isfinite(value) or value < 0:
            logger.debug(
                "Ignoring value %r of %s from %s", value, metric_name, sandbox
            )
        else:
            rule(record, value, attributes or {})

        snapshot = replace(record)
        self._listeners.notify(snapshot)
        return snapshot

    def get(self, sandbox: str) -> AggregateRecord:
        """Return a copy of the sandbox's totals.

        Unknown sandboxes get a fresh zero record that is not stored.
        """
        record = self._records.get(sandbox)
        if record is None:
            return AggregateRecord(sandbox=sandbox)
        return replace(record)

    def get_all(self) -> list[AggregateRecord]:
        """Return copies of every known sandbox's totals, in first-seen order."""
        return [replace(record) for record in self._records.values()]

    def subscribe(self, listener: AggregateListener) -> Unsubscribe:
        """Register a callback invoked with every updated record."""
        return self._listeners.add(listener)
