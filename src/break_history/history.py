"""Append-only, retention-bounded log of break history events."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable, Optional, Union

from .config import AppSettings, HistorySettings
from .db import KeyValueStore
from .models import (
    DEFAULT_RANGE,
    HistoryEvent,
    HistoryEventType,
    HistoryFilter,
    HistoryTimeRange,
    TimelineSegment,
)
from .scheduler import RetentionScheduler
from .timeline import build_timeline, resolve_timeline_window

logger = logging.getLogger(__name__)

SettingsProvider = Callable[[], AppSettings]
Clock = Callable[[], int]


def current_time_ms() -> int:
    return int(time.time() * 1000)


def resolve_query_window(history_filter: HistoryFilter, now: int) -> tuple[int, int]:
    """Return the inclusive ``(start, end)`` bounds selected by a filter.

    CUSTOM reads its start from the filter (epoch when absent). Any other
    value, recognized or not, is a window ending now, seven days long
    unless the range says otherwise.
    """
    end = history_filter.end_time or now
    parsed = HistoryTimeRange.parse(history_filter.range)
    if parsed is HistoryTimeRange.CUSTOM:
        return history_filter.start_time or 0, end
    if parsed is None:
        logger.debug(
            "Unknown history range %r; using %s.", history_filter.range, DEFAULT_RANGE.value
        )
        parsed = DEFAULT_RANGE
    return now - parsed.duration_ms, end


class EventLog:
    """Persisted collection of :class:`HistoryEvent` records.

    Every mutation rewrites the whole stored list under a lock, since the
    retention sweep runs on its own thread.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings_provider: SettingsProvider,
        config: Optional[HistorySettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.config = config or HistorySettings()
        self._settings_provider = settings_provider
        self._clock = clock or current_time_ms
        self._lock = threading.Lock()
        self._scheduler: Optional[RetentionScheduler] = None

    # lifecycle

    def init(self) -> None:
        """Sweep expired events now and keep sweeping periodically."""
        logger.info("Current history events count: %d", self.count())
        self.cleanup_old_history()
        if self._scheduler is None:
            self._scheduler = RetentionScheduler(
                self.cleanup_old_history, self.config.cleanup_interval
            )
        self._scheduler.start()

    def close(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()

    @property
    def settings(self) -> AppSettings:
        return self._settings_provider()

    @property
    def sweeping(self) -> bool:
        return bool(self._scheduler and self._scheduler.is_running())

    def __enter__(self) -> "EventLog":
        self.init()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # operations

    def add_event(
        self,
        event_type: Union[HistoryEventType, str],
        duration: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        event_type = HistoryEventType(event_type)
        if duration is not None and duration < 0:
            raise ValueError(f"duration must be non-negative, got {duration}")

        settings = self._settings_provider()
        if not settings.history_enabled:
            logger.info("History disabled, not adding %s event.", event_type.value)
            return

        event = HistoryEvent(
            id=str(uuid.uuid4()),
            type=event_type,
            timestamp=self._clock(),
            duration=duration,
            metadata=metadata,
        )
        with self._lock:
            events = self._load()
            events.append(event)
            self._save(events)
        logger.info("History event added: %s (total %d)", event.type.value, len(events))

    def get_history(self, history_filter: Optional[HistoryFilter] = None) -> list[HistoryEvent]:
        """Return stored events, newest first, optionally limited to a range."""
        if not self._settings_provider().history_enabled:
            return []

        with self._lock:
            events = self._load()
        logger.debug("Loaded %d raw history events.", len(events))
        if history_filter is not None:
            start, end = resolve_query_window(history_filter, self._clock())
            events = [event for event in events if start <= event.timestamp <= end]
        return sorted(events, key=lambda event: event.timestamp, reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._save([])
        logger.info("History cleared.")

    def cleanup_old_history(self) -> int:
        """Drop events older than the retention horizon; return how many went."""
        cutoff = self._clock() - self.config.retention_ms
        with self._lock:
            events = self._load()
            kept = [event for event in events if event.timestamp > cutoff]
            self._save(kept)
        removed = len(events) - len(kept)
        if removed:
            logger.info("Removed %d expired history events.", removed)
        return removed

    def timeline(
        self,
        time_range: object = DEFAULT_RANGE,
        custom_start: Optional[int] = None,
        custom_end: Optional[int] = None,
    ) -> list[TimelineSegment]:
        """Query a range and reconstruct its timeline."""
        now = self._clock()
        events = self.get_history(HistoryFilter(time_range, custom_start, custom_end))
        start, end = resolve_timeline_window(time_range, now, custom_start, custom_end)
        return build_timeline(events, start, end)

    def count(self) -> int:
        with self._lock:
            return len(self._load())

    def _load(self) -> list[HistoryEvent]:
        raw = self.store.get(self.config.storage_key, [])
        return [HistoryEvent.from_dict(item) for item in raw]

    def _save(self, events: list[HistoryEvent]) -> None:
        self.store.set(self.config.storage_key, [event.to_dict() for event in events])
