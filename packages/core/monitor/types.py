from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

PollerStatus = Literal["IDLE", "RUNNING"]


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    display_name: str
    executable_name: str  # lowercase


@dataclass(frozen=True)
class TerminationResult:
    pid: int
    process_name: str
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class MonitorConfig:
    poll_interval_ms: int
    graceful_termination_first: bool
    termination_wait_ms: int


@dataclass
class MonitorState:
    status: PollerStatus = "IDLE"
    ticks: int = 0
    last_tick_ms: Optional[int] = None
