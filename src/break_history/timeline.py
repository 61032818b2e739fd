"""Reconstruct a continuous activity timeline from sparse history events.

Events only mark transitions. Between two consecutive events the user is in
whatever state the earlier one left behind, so walking the events in order
and emitting the state held since the previous event yields a partition of
the query window into ``[start, end)`` segments.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .models import (
    DAY_MS,
    HistoryEvent,
    HistoryEventType,
    HistoryTimeRange,
    TimelineSegment,
    TimelineState,
)

_BREAK_ENDING = (
    HistoryEventType.BREAK_END,
    HistoryEventType.BREAK_SKIP,
    HistoryEventType.BREAK_POSTPONE,
)


class _ActivityState:
    __slots__ = ("app_running", "in_break")

    def __init__(self, app_running: bool) -> None:
        self.app_running = app_running
        self.in_break = False

    @property
    def label(self) -> TimelineState:
        if self.in_break:
            return TimelineState.BREAK
        if self.app_running:
            return TimelineState.WORK
        return TimelineState.OFFLINE

    def apply(self, event_type: HistoryEventType) -> None:
        if event_type is HistoryEventType.APP_START:
            self.app_running = True
        elif event_type is HistoryEventType.APP_STOP:
            self.app_running = False
            self.in_break = False
        elif event_type is HistoryEventType.BREAK_START:
            self.in_break = True
        elif event_type in _BREAK_ENDING:
            self.in_break = False
        # IDLE_RESET leaves the state untouched.


def build_timeline(
    events: Iterable[HistoryEvent], window_start: int, window_end: int
) -> list[TimelineSegment]:
    """Partition ``[window_start, window_end]`` into labeled segments.

    The input may be unsorted and may contain events outside the window;
    those are skipped. Ties on timestamp keep their input order. No
    zero-length segment is ever produced.
    """
    ordered = sorted(events, key=lambda event: event.timestamp)
    if not ordered:
        return []

    first_start = next(
        (event for event in ordered if event.type is HistoryEventType.APP_START),
        None,
    )
    # The app is assumed offline until its first recorded start.
    state = _ActivityState(
        app_running=not (first_start and first_start.timestamp > window_start)
    )

    segments: list[TimelineSegment] = []
    current = window_start
    for event in ordered:
        if event.timestamp < window_start or event.timestamp > window_end:
            continue
        if current < event.timestamp:
            segments.append(TimelineSegment(current, event.timestamp, state.label))
        state.apply(event.type)
        current = event.timestamp

    if current < window_end:
        segments.append(TimelineSegment(current, window_end, state.label))
    return segments


def resolve_timeline_window(
    time_range: object,
    now: int,
    custom_start: Optional[int] = None,
    custom_end: Optional[int] = None,
) -> tuple[int, int]:
    """Return the ``(start, end)`` a timeline for ``time_range`` is drawn over.

    An open-ended CUSTOM window falls back to the last seven days instead of
    stretching back to the epoch. ``custom_end`` bounds named ranges too,
    matching the query window.
    """
    parsed = HistoryTimeRange.parse(time_range)
    if parsed is HistoryTimeRange.CUSTOM:
        start = custom_start if custom_start else now - 7 * DAY_MS
        end = custom_end if custom_end else now
        return start, end
    duration = parsed.duration_ms if parsed else None
    if duration is None:
        duration = 7 * DAY_MS
    return now - duration, custom_end or now


def total_span(segments: list[TimelineSegment]) -> int:
    if not segments:
        return 0
    return segments[-1].end - segments[0].start


def layout_segments(
    segments: list[TimelineSegment],
) -> list[tuple[TimelineSegment, float, float]]:
    """Return ``(segment, left_percent, width_percent)`` for proportional drawing."""
    span = total_span(segments)
    if span <= 0:
        return []
    origin = segments[0].start
    return [
        (
            segment,
            (segment.start - origin) / span * 100.0,
            segment.duration / span * 100.0,
        )
        for segment in segments
    ]
