# util/types.py
from typing import Any, Literal, TypedDict


# Flow: Narrow types for NDJSON events.
EventType = Literal[
    "phase-start",
    "phase-complete",
    "search-progress",
    "synthesis-chunk",
    "synthesis-complete",
    "verification-progress",
    "verification-complete",
    "adjudication-chunk",
    "adjudication-complete",
    "complete",
    "error",
]


class ProgressPayload(TypedDict):
    current: int
    total: int
    status: str


class PhaseEvent(TypedDict, total=False):
    type: EventType
    phase: str
    data: Any
    content: str
    message: str
