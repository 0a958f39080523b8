from __future__ import annotations


class EngineError(Exception):
    code = "engine-error"


class InvalidModeForEventError(EngineError, ValueError):
    code = "invalid-mode-for-event"

    def __init__(self, event_id: str, mode: str):
        super().__init__(f"mode {mode} is not available for event {event_id}: no predicted arrival time")
        self.event_id = event_id
        self.mode = mode


class EventNotFoundError(EngineError, KeyError):
    code = "event-not-found"

    def __init__(self, event_id: str):
        super().__init__(event_id)
        self.event_id = event_id

    def __str__(self) -> str:
        return f"event {self.event_id} not found"
