"""
Focus session state machine: INACTIVE -> ACTIVE -> INACTIVE.

Owns session timing, the append-only session history and the emergency
unlock cooldown, plus the restricted-app list the session enforces.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from packages.shared.config import (
    DEFAULT_EMERGENCY_COOLDOWN_MS,
    RestrictedApp,
    default_restricted_apps,
)
from .types import FocusConfig, FocusModeRuntimeState, FocusSession, FocusStateSnapshot

log = logging.getLogger(__name__)

_EDITABLE_APP_FIELDS = {"name", "executable_name", "path", "is_enabled"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def format_duration(ms: int) -> str:
    hours, rest = divmod(max(0, int(ms)), 3_600_000)
    minutes = rest // 60_000
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class FocusSessionManager:
    def __init__(
        self,
        config: Optional[dict] = None,
        restricted_apps: Optional[Sequence[RestrictedApp]] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._cfg = self._parse_config(config or {})
        self._clock = clock or _now_ms
        self._lock = threading.RLock()
        self._state = FocusModeRuntimeState(emergency_unlock_cooldown_ms=self._cfg.emergency_unlock_cooldown_ms)
        self._total_focus_time = 0
        self._sessions: List[FocusSession] = []
        self._apps: List[RestrictedApp] = list(restricted_apps) if restricted_apps is not None else default_restricted_apps()

    @staticmethod
    def _parse_config(config: dict) -> FocusConfig:
        return FocusConfig(
            emergency_unlock_cooldown_ms=max(0, int(config.get("emergency_unlock_cooldown_ms", DEFAULT_EMERGENCY_COOLDOWN_MS))),
        )

    def start(self) -> None:
        """Begin a session. Calling it while active re-arms the clock."""
        with self._lock:
            if self._state.is_active:
                log.info("Focus session restarted while active")
            self._state.is_active = True
            self._state.started_at = self._clock()
            self._state.current_session_time = 0
        log.info("Focus session started")

    def tick(self) -> None:
        with self._lock:
            if self._state.is_active and self._state.started_at is not None:
                self._state.current_session_time = self._clock() - self._state.started_at

    def stop(self, was_natural: bool, tasks_completed: int) -> Optional[FocusSession]:
        with self._lock:
            started_at = self._state.started_at
            if started_at is None:
                return None

            now = self._clock()
            duration = max(0, now - started_at)
            session = FocusSession(
                id="s_" + uuid.uuid4().hex[:10],
                started_at=started_at,
                ended_at=now,
                duration=duration,
                tasks_completed=tasks_completed,
                was_unlocked_naturally=was_natural,
            )
            self._sessions.append(session)
            self._total_focus_time += duration

            self._state.is_active = False
            self._state.started_at = None
            self._state.current_session_time = 0

        log.info(
            "Focus session ended natural=%s tasks=%d duration=%s",
            was_natural, tasks_completed, format_duration(duration),
        )
        return session

    def is_active(self) -> bool:
        with self._lock:
            return self._state.is_active

    def get_state(self) -> FocusModeRuntimeState:
        with self._lock:
            return replace(self._state)

    def can_emergency_unlock(self) -> bool:
        with self._lock:
            if not self._state.is_active:
                return False
            last = self._state.last_emergency_unlock
            if last is None:
                return True
            return self._clock() - last >= self._state.emergency_unlock_cooldown_ms

    def emergency_unlock(self) -> bool:
        with self._lock:
            if not self.can_emergency_unlock():
                return False
            self.stop(was_natural=False, tasks_completed=0)
            self._state.last_emergency_unlock = self._clock()
        log.warning("Emergency unlock used")
        return True

    def get_cooldown_remaining(self) -> int:
        with self._lock:
            last = self._state.last_emergency_unlock
            if last is None:
                return 0
            elapsed = self._clock() - last
            return max(0, self._state.emergency_unlock_cooldown_ms - elapsed)

    def get_session_history(self) -> List[FocusSession]:
        with self._lock:
            return list(self._sessions)

    def get_total_focus_time(self) -> int:
        with self._lock:
            return self._total_focus_time

    def get_total_focus_time_formatted(self) -> str:
        with self._lock:
            return format_duration(self._total_focus_time + self._state.current_session_time)

    def reset(self) -> None:
        with self._lock:
            self._state.is_active = False
            self._state.started_at = None
            self._state.current_session_time = 0
            self._state.last_emergency_unlock = None

    def snapshot(self) -> FocusStateSnapshot:
        with self._lock:
            return FocusStateSnapshot(
                total_focus_time=self._total_focus_time,
                sessions=list(self._sessions),
                last_emergency_unlock=self._state.last_emergency_unlock,
            )

    def restore(self, snapshot: FocusStateSnapshot) -> None:
        with self._lock:
            self._total_focus_time = snapshot.total_focus_time
            self._sessions = list(snapshot.sessions)
            self._state.last_emergency_unlock = snapshot.last_emergency_unlock

    def get_restricted_apps(self) -> List[RestrictedApp]:
        with self._lock:
            return list(self._apps)

    def get_enabled_restricted_apps(self) -> List[RestrictedApp]:
        with self._lock:
            return [a for a in self._apps if a.is_enabled]

    def add_restricted_app(
        self,
        name: str,
        executable_name: str,
        is_enabled: bool = True,
        path: Optional[str] = None,
    ) -> RestrictedApp:
        app = RestrictedApp(name=name, executable_name=executable_name, is_enabled=is_enabled, path=path)
        with self._lock:
            self._apps.append(app)
        return app

    def remove_restricted_app(self, app_id: str) -> bool:
        """Presets are kept; returns True only if an entry was removed."""
        with self._lock:
            kept = [a for a in self._apps if a.id != app_id or a.is_preset]
            removed = len(kept) != len(self._apps)
            self._apps = kept
        return removed

    def toggle_restricted_app(self, app_id: str) -> Optional[RestrictedApp]:
        with self._lock:
            for i, app in enumerate(self._apps):
                if app.id == app_id:
                    self._apps[i] = app.model_copy(update={"is_enabled": not app.is_enabled})
                    return self._apps[i]
        return None

    def update_restricted_app(self, app_id: str, **changes) -> Optional[RestrictedApp]:
        unknown = set(changes) - _EDITABLE_APP_FIELDS
        if unknown:
            raise ValueError(f"Cannot update restricted app fields: {sorted(unknown)}")
        with self._lock:
            for i, app in enumerate(self._apps):
                if app.id == app_id:
                    self._apps[i] = RestrictedApp.model_validate({**app.model_dump(), **changes})
                    return self._apps[i]
        return None
