"""In-memory observers for fanout tests."""

from typing import Any


class RecordingObserver:
    """Observer that keeps every message it is sent."""

    def __init__(self, writable: bool = True) -> None:
        self.messages: list[dict[str, Any]] = []
        self.writable = writable

    def send(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def types(self) -> list[str]:
        return [m["type"] for m in self.messages]


class FailingObserver(RecordingObserver):
    """Observer whose transport rejects every write."""

    def send(self, message: dict[str, Any]) -> None:
        raise ConnectionResetError("peer went away")
