from __future__ import annotations

import uuid
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

MIN_POLL_INTERVAL_MS = 500
DEFAULT_POLL_INTERVAL_MS = 1500
DEFAULT_EMERGENCY_COOLDOWN_MS = 30 * 60 * 1000


def _new_app_id() -> str:
    return "app_" + uuid.uuid4().hex[:10]


class RestrictedApp(BaseModel):
    id: str = Field(default_factory=_new_app_id)
    name: str
    executable_name: str
    path: Optional[str] = None
    is_enabled: bool = True
    is_preset: bool = False

    @field_validator("executable_name")
    @classmethod
    def _non_empty_executable(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("executable_name must not be empty")
        return v


def default_restricted_apps() -> List[RestrictedApp]:
    return [
        RestrictedApp(id="steam", name="Steam", executable_name="steam.exe", is_enabled=True, is_preset=True),
        RestrictedApp(id="epic", name="Epic Games", executable_name="epicgameslauncher.exe", is_enabled=True, is_preset=True),
        RestrictedApp(id="discord", name="Discord", executable_name="discord.exe", is_enabled=False, is_preset=True),
        RestrictedApp(id="spotify", name="Spotify", executable_name="spotify.exe", is_enabled=False, is_preset=True),
    ]


def clamp_poll_interval(interval_ms: int) -> int:
    return max(MIN_POLL_INTERVAL_MS, int(interval_ms))


def normalize_thresholds(values: List[int]) -> List[int]:
    return sorted({int(v) for v in values if 0 < int(v) <= 100})


class AppConfig(BaseModel):
    restricted_apps: List[RestrictedApp] = Field(default_factory=default_restricted_apps)
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    graceful_termination_first: bool = True
    termination_wait_ms: int = 3000
    auto_unlock_on_complete: bool = True
    partial_unlock_thresholds: List[int] = Field(default_factory=lambda: [50, 75])
    show_notifications: bool = True
    emergency_unlock_cooldown_ms: int = DEFAULT_EMERGENCY_COOLDOWN_MS

    @field_validator("poll_interval_ms")
    @classmethod
    def _clamp_interval(cls, v: int) -> int:
        return clamp_poll_interval(v)

    @field_validator("termination_wait_ms", "emergency_unlock_cooldown_ms")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        return max(0, v)

    @field_validator("partial_unlock_thresholds")
    @classmethod
    def _sorted_thresholds(cls, v: List[int]) -> List[int]:
        return normalize_thresholds(v)

    def to_monitor_config(self) -> dict:
        return {
            "poll_interval_ms": self.poll_interval_ms,
            "graceful_termination_first": self.graceful_termination_first,
            "termination_wait_ms": self.termination_wait_ms,
        }

    def to_unlock_config(self) -> dict:
        return {
            "auto_unlock_on_complete": self.auto_unlock_on_complete,
            "partial_unlock_thresholds": list(self.partial_unlock_thresholds),
            "show_notifications": self.show_notifications,
        }

    def to_focus_config(self) -> dict:
        return {
            "emergency_unlock_cooldown_ms": self.emergency_unlock_cooldown_ms,
        }
