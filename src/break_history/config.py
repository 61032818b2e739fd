"""Configuration models and helpers for break history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


@dataclass(slots=True)
class HistorySettings:
    """Runtime configuration for the event log."""

    retention: timedelta = timedelta(days=90)
    cleanup_interval: timedelta = timedelta(hours=12)
    storage_key: str = "events"

    @property
    def retention_ms(self) -> int:
        return int(self.retention.total_seconds() * 1000)

    @classmethod
    def from_intervals(
        cls,
        retention_days: float,
        cleanup_hours: float | None = None,
    ) -> "HistorySettings":
        cleanup = cleanup_hours if cleanup_hours is not None else 12.0
        return cls(
            retention=timedelta(days=retention_days),
            cleanup_interval=timedelta(hours=cleanup),
        )


class AppSettings(BaseModel):
    """The part of the application settings document the history reads."""

    history_enabled: bool = Field(default=True, alias="historyEnabled")
    background_color: str = Field(default="#16a085", alias="backgroundColor")
    secondary_color: str = Field(default="#ffffff", alias="secondaryColor")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def load_app_settings(path: Path) -> AppSettings:
    """Read settings from ``path``; a missing file yields the defaults."""
    path = Path(path)
    if not path.exists():
        return AppSettings()
    return AppSettings.model_validate_json(path.read_text(encoding="utf-8"))
