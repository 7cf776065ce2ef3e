"""Core domain models for sandbox telemetry."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

AttributeValue = str | int | bool | float
Attributes = dict[str, AttributeValue]


class EventKind(StrEnum):
    """Kinds of discrete events reported by a sandbox agent."""

    USER_PROMPT = "user_prompt"
    API_REQUEST = "api_request"
    API_ERROR = "api_error"
    TOOL_RESULT = "tool_result"
    TOOL_DECISION = "tool_decision"

    @classmethod
    def parse(cls, raw: object) -> "EventKind | None":
        """Return the kind named by ``raw``, or None if it names no kind."""
        try:
            return cls(raw)
        except ValueError:
            return None


class LifecycleEvent(StrEnum):
    """Sandbox lifecycle notifications relayed to real-time observers.

    Values are the message types observers receive.
    """

    SPRITE_CREATED = "sprite_created"
    SPRITE_DELETED = "sprite_deleted"
    SPRITE_SHUTDOWN = "sprite_shutdown"
    SPRITE_WOKEN = "sprite_woken"
    SPRITE_RESTORED = "checkpoint_restored"
    SANDBOX_CREATED = "sandbox:created"
    SANDBOX_DESTROYED = "sandbox:destroyed"
    CHECKPOINT_CREATED = "checkpoint:created"
    CHECKPOINT_RESTORED = "checkpoint:restored"
    EXEC_OUTPUT = "exec:output"


class SandboxStatus(StrEnum):
    """Telemetry status of a sandbox."""

    ACTIVE = "active"
    NO_DATA = "no_data"


@dataclass
class AggregateRecord:
    """Running telemetry totals for one sandbox.

    Attributes:
        sandbox: Sandbox identity the totals belong to.
        input_tokens: Prompt tokens consumed.
        output_tokens: Completion tokens produced.
        cache_read_tokens: Tokens served from the prompt cache.
        cache_creation_tokens: Tokens written to the prompt cache.
        cost_usd: Accumulated spend in US dollars.
        sessions: Agent sessions started.
        commits: Commits created.
        pull_requests: Pull requests opened.
        lines_added: Lines of code added.
        lines_removed: Lines of code removed.
        status: ``active`` once any metric has been received.
        last_updated: Time of the most recent update, if any.

    Counters hold the raw sum of the received values; the wire form
    truncates them to integers.
    """

    sandbox: str
    input_tokens: float = 0
    output_tokens: float = 0
    cache_read_tokens: float = 0
    cache_creation_tokens: float = 0
    cost_usd: float = 0.0
    sessions: float = 0
    commits: float = 0
    pull_requests: float = 0
    lines_added: float = 0
    lines_removed: float = 0
    status: SandboxStatus = SandboxStatus.NO_DATA
    last_updated: datetime | None = None

    @property
    def total_tokens(self) -> float:
        """Input plus output tokens."""
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class TelemetryEvent:
    """A discrete event retained in a sandbox's event log.

    Attributes:
        timestamp: When the event happened (timezone-aware, UTC).
        sandbox: Sandbox identity that produced the event.
        kind: Event kind.
        attributes: Free-form structured fields, including the log body
            for log-sourced events.
    """

    timestamp: datetime
    sandbox: str
    kind: EventKind
    attributes: Attributes = field(default_factory=dict)


@dataclass(frozen=True)
class ApiStats:
    """API usage derived from a sandbox's retained events."""

    total_requests: int = 0
    errors: int = 0
    total_duration_ms: float = 0.0


@dataclass
class ToolUsage:
    """Per-tool counters derived from retained events."""

    uses: int = 0
    errors: int = 0


ToolStats = dict[str, ToolUsage]
