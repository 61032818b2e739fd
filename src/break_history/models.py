"""Domain models for break history events and derived timelines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class HistoryEventType(str, Enum):
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"
    BREAK_SKIP = "BREAK_SKIP"
    BREAK_POSTPONE = "BREAK_POSTPONE"
    APP_START = "APP_START"
    APP_STOP = "APP_STOP"
    IDLE_RESET = "IDLE_RESET"


class HistoryTimeRange(str, Enum):
    HOURS_24 = "24_HOURS"
    DAYS_3 = "3_DAYS"
    DAYS_7 = "7_DAYS"
    DAYS_14 = "14_DAYS"
    DAYS_30 = "30_DAYS"
    CUSTOM = "CUSTOM"

    @property
    def duration_ms(self) -> Optional[int]:
        """Length of a relative range; ``None`` for CUSTOM."""
        return _RANGE_DURATIONS.get(self)

    @classmethod
    def parse(cls, value: Any) -> Optional["HistoryTimeRange"]:
        """Return the matching range, or ``None`` for unrecognized values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


_RANGE_DURATIONS: dict[HistoryTimeRange, int] = {
    HistoryTimeRange.HOURS_24: DAY_MS,
    HistoryTimeRange.DAYS_3: 3 * DAY_MS,
    HistoryTimeRange.DAYS_7: 7 * DAY_MS,
    HistoryTimeRange.DAYS_14: 14 * DAY_MS,
    HistoryTimeRange.DAYS_30: 30 * DAY_MS,
}

DEFAULT_RANGE = HistoryTimeRange.DAYS_7


@dataclass(frozen=True, slots=True)
class HistoryEvent:
    """A single recorded occurrence; never modified once created."""

    id: str
    type: HistoryEventType
    timestamp: int
    duration: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
        }
        if self.duration is not None:
            payload["duration"] = self.duration
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEvent":
        return cls(
            id=str(data["id"]),
            type=HistoryEventType(data["type"]),
            timestamp=int(data["timestamp"]),
            duration=data.get("duration"),
            metadata=data.get("metadata"),
        )


@dataclass(slots=True)
class HistoryFilter:
    """Query descriptor: a named range plus optional explicit bounds in ms.

    ``range`` may hold any raw value; unrecognized ones fall back to the
    seven day window when the filter is resolved.
    """

    range: Any = DEFAULT_RANGE
    start_time: Optional[int] = None
    end_time: Optional[int] = None


class TimelineState(str, Enum):
    BREAK = "break"
    WORK = "work"
    OFFLINE = "offline"
    # Reserved; no event type currently leads into it.
    OUTSIDE = "outside"


@dataclass(frozen=True, slots=True)
class TimelineSegment:
    """Half-open interval ``[start, end)`` of a single inferred state."""

    start: int
    end: int
    state: TimelineState
    event: Optional[HistoryEvent] = None

    @property
    def duration(self) -> int:
        return self.end - self.start
