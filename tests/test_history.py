"""Tests for the persisted event log."""

import sqlite3
from datetime import timedelta

import pytest

from break_history.config import HistorySettings
from break_history.history import EventLog, resolve_query_window
from break_history.models import (
    DAY_MS,
    HOUR_MS,
    HistoryEvent,
    HistoryEventType,
    HistoryFilter,
    HistoryTimeRange,
    TimelineState,
)

from conftest import NOW


def seed(store, *timestamps: int, event_type: HistoryEventType = HistoryEventType.BREAK_START) -> list[HistoryEvent]:
    """Helper to write events with arbitrary timestamps straight to the store."""
    events = [
        HistoryEvent(id=f"seed-{index}", type=event_type, timestamp=timestamp)
        for index, timestamp in enumerate(timestamps)
    ]
    store.set("events", [event.to_dict() for event in events])
    return events


def timestamps(events: list[HistoryEvent]) -> list[int]:
    return [event.timestamp for event in events]


class TestAddEvent:
    """Appending events."""

    def test_add_event_persists_full_record(self, event_log, store, clock):
        event_log.add_event(HistoryEventType.BREAK_END, 300, {"reason": "scheduled"})

        stored = store.get("events")
        assert len(stored) == 1
        assert stored[0]["type"] == "BREAK_END"
        assert stored[0]["timestamp"] == clock.now
        assert stored[0]["duration"] == 300
        assert stored[0]["metadata"] == {"reason": "scheduled"}
        assert stored[0]["id"]

    def test_add_event_accepts_wire_value(self, event_log):
        event_log.add_event("APP_START")
        assert event_log.get_history()[0].type is HistoryEventType.APP_START

    def test_add_event_appends_in_insertion_order(self, event_log, store, clock):
        event_log.add_event(HistoryEventType.APP_START)
        clock.advance(1000)
        event_log.add_event(HistoryEventType.BREAK_START)

        assert [item["type"] for item in store.get("events")] == ["APP_START", "BREAK_START"]

    def test_ids_are_unique(self, event_log):
        for _ in range(50):
            event_log.add_event(HistoryEventType.IDLE_RESET)
        ids = [event.id for event in event_log.get_history()]
        assert len(ids) == 50
        assert len(set(ids)) == 50

    def test_unknown_type_is_rejected(self, event_log, store):
        with pytest.raises(ValueError):
            event_log.add_event("COFFEE")
        assert store.get("events") is None

    def test_negative_duration_is_rejected(self, event_log, store):
        with pytest.raises(ValueError):
            event_log.add_event(HistoryEventType.BREAK_END, -1)
        assert store.get("events") is None

    def test_disabled_history_drops_event(self, event_log, store, settings):
        seed(store, NOW - 10)
        before = store.get("events")
        settings.disable()

        event_log.add_event(HistoryEventType.BREAK_START)

        assert store.get("events") == before

    def test_persistence_failure_propagates(self, event_log, store):
        store.close()
        with pytest.raises(sqlite3.Error):
            event_log.add_event(HistoryEventType.APP_START)


class TestGetHistory:
    """Querying with and without filters."""

    def test_no_filter_returns_everything_newest_first(self, event_log, store):
        seed(store, NOW - 5 * DAY_MS, NOW - 1, NOW - 60 * DAY_MS)
        assert timestamps(event_log.get_history()) == [NOW - 1, NOW - 5 * DAY_MS, NOW - 60 * DAY_MS]

    def test_last_24_hours_bounds_are_inclusive(self, event_log, store):
        seed(store, NOW - DAY_MS - 1, NOW - DAY_MS, NOW - HOUR_MS, NOW)
        result = event_log.get_history(HistoryFilter(HistoryTimeRange.HOURS_24))
        assert timestamps(result) == [NOW, NOW - HOUR_MS, NOW - DAY_MS]

    @pytest.mark.parametrize(
        ("time_range", "days"),
        [
            (HistoryTimeRange.DAYS_3, 3),
            (HistoryTimeRange.DAYS_7, 7),
            (HistoryTimeRange.DAYS_14, 14),
            (HistoryTimeRange.DAYS_30, 30),
        ],
    )
    def test_named_ranges(self, event_log, store, time_range, days):
        seed(store, NOW - days * DAY_MS - 1, NOW - days * DAY_MS + 1)
        assert timestamps(event_log.get_history(HistoryFilter(time_range))) == [NOW - days * DAY_MS + 1]

    def test_unknown_range_falls_back_to_seven_days(self, event_log, store):
        seed(store, NOW - 8 * DAY_MS, NOW - 6 * DAY_MS)
        result = event_log.get_history(HistoryFilter("LAST_DECADE"))
        assert timestamps(result) == [NOW - 6 * DAY_MS]

    def test_end_time_bounds_named_ranges(self, event_log, store):
        seed(store, NOW - 2 * DAY_MS, NOW - HOUR_MS)
        result = event_log.get_history(
            HistoryFilter(HistoryTimeRange.DAYS_3, end_time=NOW - DAY_MS)
        )
        assert timestamps(result) == [NOW - 2 * DAY_MS]

    def test_custom_range_uses_explicit_bounds(self, event_log, store):
        seed(store, 100, 200, 300, 400)
        result = event_log.get_history(
            HistoryFilter(HistoryTimeRange.CUSTOM, start_time=200, end_time=300)
        )
        assert timestamps(result) == [300, 200]

    def test_custom_range_without_start_begins_at_epoch(self, event_log, store):
        seed(store, 0, 5, NOW)
        result = event_log.get_history(HistoryFilter(HistoryTimeRange.CUSTOM))
        assert timestamps(result) == [NOW, 5, 0]

    def test_equal_timestamps_keep_insertion_order(self, event_log, store):
        events = seed(store, NOW - 10, NOW - 10)
        assert [event.id for event in event_log.get_history()] == [events[0].id, events[1].id]

    def test_disabled_history_returns_nothing(self, event_log, store, settings):
        seed(store, NOW - 10)
        settings.disable()
        assert event_log.get_history() == []
        assert event_log.get_history(HistoryFilter(HistoryTimeRange.HOURS_24)) == []

    def test_resolve_query_window(self):
        assert resolve_query_window(HistoryFilter(HistoryTimeRange.HOURS_24), NOW) == (NOW - DAY_MS, NOW)
        assert resolve_query_window(HistoryFilter("CUSTOM", None, None), NOW) == (0, NOW)
        assert resolve_query_window(HistoryFilter(None), NOW) == (NOW - 7 * DAY_MS, NOW)


class TestClear:
    """Clearing the whole log."""

    def test_clear_empties_history(self, event_log, store):
        seed(store, NOW - 10, NOW - 20)
        event_log.clear()
        assert event_log.get_history() == []

    def test_clear_twice_is_same_as_once(self, event_log, store):
        seed(store, NOW - 10)
        event_log.clear()
        event_log.clear()
        assert store.get("events") == []

    def test_clear_ignores_disabled_flag(self, event_log, store, settings):
        seed(store, NOW - 10)
        settings.disable()
        event_log.clear()
        assert store.get("events") == []


class TestRetention:
    """Purging events past the retention horizon."""

    def test_sweep_removes_expired_events(self, event_log, store):
        horizon = NOW - 90 * DAY_MS
        seed(store, horizon - 1, horizon, horizon + 1, NOW)

        removed = event_log.cleanup_old_history()

        assert removed == 2
        assert timestamps(event_log.get_history()) == [NOW, horizon + 1]

    def test_sweep_keeps_surviving_events_unchanged(self, event_log, store):
        events = seed(store, NOW - DAY_MS, NOW - 100 * DAY_MS)
        event_log.cleanup_old_history()
        assert event_log.get_history() == [events[0]]

    def test_sweep_is_idempotent(self, event_log, store):
        seed(store, NOW - 100 * DAY_MS, NOW - DAY_MS)
        assert event_log.cleanup_old_history() == 1
        snapshot = store.get("events")
        assert event_log.cleanup_old_history() == 0
        assert store.get("events") == snapshot

    def test_custom_retention(self, store, settings, clock):
        log = EventLog(store, settings, config=HistorySettings.from_intervals(1), clock=clock)
        seed(store, NOW - 2 * DAY_MS, NOW - HOUR_MS)
        assert log.cleanup_old_history() == 1


class TestLifecycle:
    """init/close and the periodic sweep."""

    def test_init_sweeps_and_arms_timer(self, event_log, store):
        seed(store, NOW - 100 * DAY_MS, NOW - DAY_MS)

        event_log.init()

        assert event_log.sweeping
        assert event_log.count() == 1
        event_log.close()
        assert not event_log.sweeping

    def test_init_twice_keeps_one_timer(self, event_log):
        event_log.init()
        scheduler = event_log._scheduler
        thread = scheduler._thread
        event_log.init()
        assert event_log._scheduler is scheduler
        assert scheduler._thread is thread

    def test_close_is_safe_without_init(self, event_log):
        event_log.close()
        event_log.close()
        assert not event_log.sweeping

    def test_context_manager(self, store, settings, clock):
        config = HistorySettings(cleanup_interval=timedelta(hours=1))
        with EventLog(store, settings, config=config, clock=clock) as log:
            assert log.sweeping
        assert not log.sweeping


class TestTimeline:
    """Timeline built from logged events."""

    def test_timeline_over_last_24_hours(self, event_log, clock):
        clock.now = NOW - 10 * HOUR_MS
        event_log.add_event(HistoryEventType.APP_START)
        clock.now = NOW - 2 * HOUR_MS
        event_log.add_event(HistoryEventType.BREAK_START)
        clock.now = NOW - HOUR_MS
        event_log.add_event(HistoryEventType.BREAK_END, 3600)
        clock.now = NOW

        segments = event_log.timeline(HistoryTimeRange.HOURS_24)

        assert [(s.start, s.end, s.state) for s in segments] == [
            (NOW - DAY_MS, NOW - 10 * HOUR_MS, TimelineState.OFFLINE),
            (NOW - 10 * HOUR_MS, NOW - 2 * HOUR_MS, TimelineState.WORK),
            (NOW - 2 * HOUR_MS, NOW - HOUR_MS, TimelineState.BREAK),
            (NOW - HOUR_MS, NOW, TimelineState.WORK),
        ]

    def test_timeline_is_empty_without_events(self, event_log):
        assert event_log.timeline() == []

    def test_named_range_timeline_stops_at_explicit_end(self, event_log, clock):
        clock.now = NOW - 3 * HOUR_MS
        event_log.add_event(HistoryEventType.APP_START)
        clock.now = NOW - HOUR_MS
        event_log.add_event(HistoryEventType.APP_STOP)
        clock.now = NOW

        segments = event_log.timeline(HistoryTimeRange.HOURS_24, None, NOW - 2 * HOUR_MS)

        assert [(s.start, s.end, s.state) for s in segments] == [
            (NOW - DAY_MS, NOW - 3 * HOUR_MS, TimelineState.OFFLINE),
            (NOW - 3 * HOUR_MS, NOW - 2 * HOUR_MS, TimelineState.WORK),
        ]
