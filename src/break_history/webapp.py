"""FastAPI application that exposes the break history over a local HTTP API."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import HistorySettings, load_app_settings
from .db import KeyValueStore
from .history import EventLog
from .models import DEFAULT_RANGE, HistoryEvent, HistoryEventType, HistoryFilter
from .paths import get_db_path, get_settings_path
from .timeline import layout_segments, total_span

logger = logging.getLogger(__name__)

_UNAVAILABLE = "History unavailable"


class HistoryEventPayload(BaseModel):
    type: HistoryEventType
    duration: Optional[int] = Field(default=None, ge=0)
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings_path: Optional[Path] = None,
    config: Optional[HistorySettings] = None,
    event_log: Optional[EventLog] = None,
) -> FastAPI:
    """Instantiate the FastAPI application.

    ``event_log`` replaces the log built from ``db_path``, ``settings_path``
    and ``config``; it already carries its own config, so passing both is an
    error.
    """
    if event_log is not None and config is not None:
        raise ValueError("Pass either event_log or config, not both.")
    resolved_db_path = Path(db_path or get_db_path())
    if event_log is None:
        resolved_settings_path = Path(settings_path or get_settings_path())
        event_log = EventLog(
            KeyValueStore.open(resolved_db_path),
            lambda: load_app_settings(resolved_settings_path),
            config=config,
        )
    log = event_log

    app = FastAPI(title="Break History", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.event_log = log

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        log.init()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        log.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        event_log: EventLog = request.app.state.event_log
        try:
            enabled = event_log.settings.history_enabled
            count = event_log.count()
        except (sqlite3.Error, ValueError) as exc:
            logger.exception("Failed to read history status.")
            raise HTTPException(status_code=503, detail=_UNAVAILABLE) from exc
        return {
            "history_enabled": enabled,
            "event_count": count,
            "retention_sweep_running": event_log.sweeping,
            "database_path": str(request.app.state.db_path),
            "retention_days": event_log.config.retention.total_seconds() / 86400.0,
        }

    @app.get("/api/history")
    def history(
        request: Request,
        range: Optional[str] = Query(
            default=None,
            description="Named range such as 24_HOURS or CUSTOM; omit for all events.",
        ),
        start: Optional[int] = Query(
            default=None, description="CUSTOM range start, ms since epoch."
        ),
        end: Optional[int] = Query(default=None, description="Range end, ms since epoch."),
    ) -> Dict[str, Any]:
        history_filter = _build_filter(range, start, end)
        try:
            events = request.app.state.event_log.get_history(history_filter)
        except (sqlite3.Error, ValueError) as exc:
            logger.exception("Failed to query history.")
            raise HTTPException(status_code=503, detail=_UNAVAILABLE) from exc
        return {"events": [event.to_dict() for event in events]}

    @app.post("/api/history", status_code=204)
    def add_history_event(payload: HistoryEventPayload, request: Request) -> Response:
        request.app.state.event_log.add_event(
            payload.type, payload.duration, payload.metadata
        )
        return Response(status_code=204)

    @app.post("/api/history/test", status_code=204)
    def add_test_event(request: Request) -> Response:
        request.app.state.event_log.add_event(
            HistoryEventType.BREAK_START, metadata={"test": True}
        )
        return Response(status_code=204)

    @app.delete("/api/history", status_code=204)
    def clear_history(request: Request) -> Response:
        request.app.state.event_log.clear()
        return Response(status_code=204)

    @app.get("/api/timeline")
    def timeline(
        request: Request,
        range: str = Query(default=DEFAULT_RANGE.value, description="Named range."),
        start: Optional[int] = Query(default=None, description="CUSTOM start, ms."),
        end: Optional[int] = Query(default=None, description="Range end, ms."),
    ) -> Dict[str, Any]:
        try:
            segments = request.app.state.event_log.timeline(range, start, end)
        except (sqlite3.Error, ValueError) as exc:
            logger.exception("Failed to build timeline.")
            raise HTTPException(status_code=503, detail=_UNAVAILABLE) from exc
        return {
            "total_span": total_span(segments),
            "segments": [
                {
                    "start": segment.start,
                    "end": segment.end,
                    "state": segment.state.value,
                    "event": _event_payload(segment.event),
                    "left_percent": left,
                    "width_percent": width,
                }
                for segment, left, width in layout_segments(segments)
            ],
        }

    return app


def _build_filter(
    range_value: Optional[str], start: Optional[int], end: Optional[int]
) -> Optional[HistoryFilter]:
    if range_value is None and start is None and end is None:
        return None
    return HistoryFilter(range=range_value or DEFAULT_RANGE, start_time=start, end_time=end)


def _event_payload(event: Optional[HistoryEvent]) -> Optional[Dict[str, Any]]:
    return event.to_dict() if event else None
