"""BDD step definitions for telemetry ingestion features."""

from dataclasses import dataclass, field

import pytest
from pytest_bdd import given, parsers, then, when

from sprite_telemetry.adapters.storage.aggregates import TOKEN_USAGE
from sprite_telemetry.config import TelemetryConfig
from sprite_telemetry.core.models import LifecycleEvent, SandboxStatus
from sprite_telemetry.runtime.service import TelemetryService
from tests.observers import RecordingObserver
from tests.otlp_builders import (
    log_record,
    logs_request,
    metrics_request,
    number_point,
    resource,
    sandbox_resource,
    sum_metric,
)


@dataclass
class IngestionScenarioContext:
    """Shared state between steps in an ingestion scenario."""

    service: TelemetryService = field(
        default_factory=lambda: TelemetryService(TelemetryConfig(grpc_enabled=False))
    )
    observer: RecordingObserver = field(default_factory=RecordingObserver)


@pytest.fixture
def ctx() -> IngestionScenarioContext:
    """Fresh scenario context for each test."""
    return IngestionScenarioContext()


# === Background Steps ===
@given("a telemetry service")
def step_service(ctx: IngestionScenarioContext) -> None:
    assert ctx.service.get_all_telemetry() == []


@given("a connected observer")
def step_observer(ctx: IngestionScenarioContext) -> None:
    ctx.service.fanout.connect(ctx.observer)


# === Ingestion Steps ===
@when(
    parsers.parse(
        'a resource with service.name "{service_name}" exports {count:d} "{token_type}" tokens'
    )
)
def step_export_tokens(
    ctx: IngestionScenarioContext, service_name: str, count: int, token_type: str
) -> None:
    request = metrics_request(
        resource({"service.name": service_name}),
        sum_metric(TOKEN_USAGE, number_point(count, {"type": token_type})),
    )
    ctx.service.ingestor.ingest_metrics(request)


@when(parsers.parse('sandbox "{sandbox}" logs {count:d} "{event_type}" events'))
def step_log_events(
    ctx: IngestionScenarioContext, sandbox: str, count: int, event_type: str
) -> None:
    records = [log_record({"event_type": event_type, "seq": i}) for i in range(count)]
    ctx.service.ingestor.ingest_logs(logs_request(sandbox_resource(sandbox), *records))


@when(parsers.parse('the lifecycle notification "{message_type}" is published'))
def step_publish_lifecycle(ctx: IngestionScenarioContext, message_type: str) -> None:
    ctx.service.publish_lifecycle(LifecycleEvent(message_type), {"name": "alpha"})


# === Assertion Steps ===
@then(
    parsers.parse(
        'sandbox "{sandbox}" has {input_tokens:d} input tokens '
        "and {output_tokens:d} output tokens"
    )
)
def step_check_tokens(
    ctx: IngestionScenarioContext, sandbox: str, input_tokens: int, output_tokens: int
) -> None:
    record = ctx.service.get_sprite_telemetry(sandbox)
    assert record.input_tokens == input_tokens
    assert record.output_tokens == output_tokens


@then(parsers.parse('sandbox "{sandbox}" has status "{status}"'))
def step_check_status(ctx: IngestionScenarioContext, sandbox: str, status: str) -> None:
    assert ctx.service.get_sprite_telemetry(sandbox).status is SandboxStatus(status)


@then("no sandbox has telemetry")
def step_no_telemetry(ctx: IngestionScenarioContext) -> None:
    assert ctx.service.get_all_telemetry() == []


@then(parsers.parse('the observer received {count:d} "{message_type}" messages'))
def step_check_message_count(
    ctx: IngestionScenarioContext, count: int, message_type: str
) -> None:
    assert ctx.observer.types.count(message_type) == count


@then(parsers.parse('sandbox "{sandbox}" retains {count:d} events'))
def step_check_retained(ctx: IngestionScenarioContext, sandbox: str, count: int) -> None:
    assert len(ctx.service.get_sprite_events(sandbox, limit=count + 100)) == count


@then(parsers.parse('the oldest retained event of sandbox "{sandbox}" has sequence {seq:d}'))
def step_check_oldest(ctx: IngestionScenarioContext, sandbox: str, seq: int) -> None:
    events = ctx.service.get_sprite_events(sandbox, limit=1000)
    assert events[0].attributes["seq"] == seq


@then(parsers.parse("the observer's last message has type \"{message_type}\""))
def step_check_last_message(ctx: IngestionScenarioContext, message_type: str) -> None:
    assert ctx.observer.messages[-1]["type"] == message_type


@then(parsers.parse("the sandboxes created counter is {count:d}"))
def step_check_created_counter(ctx: IngestionScenarioContext, count: int) -> None:
    registry = ctx.service.lifecycle_metrics.registry
    assert registry.get_sample_value("automaker_sandboxes_total") == count
