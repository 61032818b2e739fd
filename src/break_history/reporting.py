"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .models import HistoryEvent, HistoryEventType, TimelineSegment
from .timeline import layout_segments, total_span

EVENT_LABELS: dict[HistoryEventType, str] = {
    HistoryEventType.BREAK_START: "Break Started",
    HistoryEventType.BREAK_END: "Break Ended",
    HistoryEventType.BREAK_SKIP: "Break Skipped",
    HistoryEventType.BREAK_POSTPONE: "Break Snoozed",
    HistoryEventType.APP_START: "App Started",
    HistoryEventType.APP_STOP: "App Stopped",
    HistoryEventType.IDLE_RESET: "Idle Reset",
}

_BAR_WIDTH = 60
_BAR_CHARS = {"break": "#", "work": "=", "offline": ".", "outside": "-"}


class HistoryPrinter:
    """Render break history in the console."""

    def print_disabled(self) -> None:
        print("History Disabled")
        print("Enable history tracking in Settings to view your break history.")

    def print_events(self, events: Iterable[HistoryEvent]) -> None:
        events = list(events)
        if not events:
            print("No history events found for the selected time range.")
            return
        print("Events")
        print("-" * 50)
        for event in events:
            label = format_event_type(event.type)
            duration = format_duration(event.duration)
            print(f"  {format_timestamp(event.timestamp):<20} {label:<15} {duration}".rstrip())
        print()
        print("Data is only stored locally and saved for up to 90 days.")

    def print_timeline(self, segments: list[TimelineSegment]) -> None:
        if not segments:
            print("No timeline for the selected time range.")
            return
        print("Timeline")
        print("-" * 50)
        print(f"  [{render_bar(segments)}]")
        print("  # break   = work   . offline")
        print()
        for segment in segments:
            print(
                f"  {format_timestamp(segment.start)} -> {format_timestamp(segment.end)}"
                f"  {segment.state.value:<8} {format_duration(segment.duration // 1000)}"
            )


def format_event_type(event_type: HistoryEventType) -> str:
    return EVENT_LABELS.get(event_type, str(event_type))


def format_duration(seconds: Optional[int]) -> str:
    if not seconds:
        return ""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


def format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def render_bar(segments: list[TimelineSegment], width: int = _BAR_WIDTH) -> str:
    """Draw the timeline as a fixed-width character bar."""
    if total_span(segments) <= 0:
        return " " * width
    cells = [" "] * width
    for segment, left, seg_width in layout_segments(segments):
        first = int(left / 100.0 * width)
        last = max(first + 1, int(round((left + seg_width) / 100.0 * width)))
        for index in range(first, min(last, width)):
            cells[index] = _BAR_CHARS[segment.state.value]
    return "".join(cells)
