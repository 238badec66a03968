from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from packages.shared.config import DEFAULT_EMERGENCY_COOLDOWN_MS


class FocusSession(BaseModel):
    """History record, written once when a session stops."""
    model_config = ConfigDict(frozen=True)

    id: str
    started_at: int  # epoch ms
    ended_at: int  # epoch ms
    duration: int  # ms
    tasks_completed: int
    was_unlocked_naturally: bool


class FocusStateSnapshot(BaseModel):
    total_focus_time: int = 0
    sessions: List[FocusSession] = Field(default_factory=list)
    last_emergency_unlock: Optional[int] = None


@dataclass(frozen=True)
class FocusConfig:
    emergency_unlock_cooldown_ms: int


@dataclass
class FocusModeRuntimeState:
    is_active: bool = False
    started_at: Optional[int] = None
    current_session_time: int = 0
    last_emergency_unlock: Optional[int] = None
    emergency_unlock_cooldown_ms: int = DEFAULT_EMERGENCY_COOLDOWN_MS
