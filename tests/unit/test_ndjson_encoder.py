"""Tests for the JSON and NDJSON wire encoders."""

import json
from datetime import UTC, datetime

import pytest

from sprite_telemetry.core.encoding.ndjson import (
    api_stats_to_dict,
    encode_events,
    event_to_dict,
    format_timestamp,
    make_message,
    record_to_dict,
    tool_stats_to_dict,
)
from sprite_telemetry.core.models import (
    AggregateRecord,
    ApiStats,
    EventKind,
    SandboxStatus,
    TelemetryEvent,
    ToolUsage,
)

SAMPLE_TIME = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=UTC)


class TestFormatTimestamp:
    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_millisecond_precision_with_z_suffix(self) -> None:
        assert format_timestamp(SAMPLE_TIME) == "2024-01-15T10:30:00.123Z"

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_whole_seconds_keep_three_digits(self) -> None:
        value = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

        assert format_timestamp(value) == "2024-01-15T10:30:00.000Z"

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_none_stays_none(self) -> None:
        assert format_timestamp(None) is None


class TestRecordToDict:
    """Tests for record_to_dict()."""

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_uses_camel_case_keys(self) -> None:
        record = AggregateRecord(
            sandbox="alpha",
            input_tokens=10,
            output_tokens=20,
            cache_read_tokens=3,
            cache_creation_tokens=4,
            cost_usd=0.5,
            sessions=1,
            commits=2,
            pull_requests=1,
            lines_added=40,
            lines_removed=15,
            status=SandboxStatus.ACTIVE,
            last_updated=SAMPLE_TIME,
        )

        assert record_to_dict(record) == {
            "spriteName": "alpha",
            "inputTokens": 10,
            "outputTokens": 20,
            "cacheReadTokens": 3,
            "cacheCreationTokens": 4,
            "costUsd": 0.5,
            "sessions": 1,
            "commits": 2,
            "pullRequests": 1,
            "linesAdded": 40,
            "linesRemoved": 15,
            "status": "active",
            "lastUpdated": "2024-01-15T10:30:00.123Z",
        }

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_zero_record(self) -> None:
        result = record_to_dict(AggregateRecord(sandbox="ghost"))

        assert result["status"] == "no_data"
        assert result["lastUpdated"] is None
        assert result["inputTokens"] == 0

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_counters_are_truncated_sums(self) -> None:
        record = AggregateRecord(
            sandbox="alpha", commits=1.0, lines_added=2.75, cost_usd=0.125
        )

        result = record_to_dict(record)

        assert result["commits"] == 1
        assert isinstance(result["commits"], int)
        assert result["linesAdded"] == 2
        assert result["costUsd"] == 0.125


class TestEventEncoding:
    """Tests for event_to_dict() and encode_events()."""

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_event_to_dict(self) -> None:
        event = TelemetryEvent(
            timestamp=SAMPLE_TIME,
            sandbox="alpha",
            kind=EventKind.TOOL_RESULT,
            attributes={"toolName": "bash", "success": True},
        )

        assert event_to_dict(event) == {
            "timestamp": "2024-01-15T10:30:00.123Z",
            "eventType": "tool_result",
            "spriteName": "alpha",
            "attributes": {"toolName": "bash", "success": True},
        }

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_encode_empty_returns_empty_string(self) -> None:
        assert encode_events([]) == ""

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_encode_one_object_per_line(self) -> None:
        events = [
            TelemetryEvent(SAMPLE_TIME, "alpha", EventKind.USER_PROMPT),
            TelemetryEvent(SAMPLE_TIME, "alpha", EventKind.API_REQUEST, {"model": "m"}),
        ]

        result = encode_events(events)

        assert result.endswith("\n")
        lines = result.strip().split("\n")
        assert len(lines) == 2
        assert json.loads(lines[0])["eventType"] == "user_prompt"
        assert json.loads(lines[1])["attributes"] == {"model": "m"}

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_encode_accepts_generator(self) -> None:
        events = (TelemetryEvent(SAMPLE_TIME, "s", EventKind.API_ERROR) for _ in range(3))

        assert encode_events(events).count("\n") == 3


class TestStatsAndMessages:
    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_api_stats_to_dict(self) -> None:
        stats = ApiStats(total_requests=2, errors=1, total_duration_ms=300.0)

        assert api_stats_to_dict(stats) == {
            "totalRequests": 2,
            "errors": 1,
            "totalDurationMs": 300.0,
        }

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_tool_stats_to_dict(self) -> None:
        stats = {"bash": ToolUsage(uses=3, errors=1)}

        assert tool_stats_to_dict(stats) == {"bash": {"uses": 3, "errors": 1}}

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_make_message_omits_missing_payload(self) -> None:
        assert make_message("pong") == {"type": "pong"}
        assert make_message("sprite_created", {"name": "a"}) == {
            "type": "sprite_created",
            "payload": {"name": "a"},
        }

    @pytest.mark.core
    @pytest.mark.tier(0)
    def test_make_message_keeps_falsy_payload(self) -> None:
        assert make_message("initial_state", []) == {"type": "initial_state", "payload": []}
