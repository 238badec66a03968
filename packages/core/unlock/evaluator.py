"""
Task-completion driven unlock logic.

Turns the completion state of a task list into progress, partial-unlock and
full-unlock notifications. Each threshold notifies at most once per
tracking epoch; ``reset_tracking`` starts a new epoch.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable, Optional, Sequence

from packages.shared.config import normalize_thresholds
from .types import Task, UnlockConditionResult, UnlockConfig, UnlockNotification

log = logging.getLogger(__name__)

BASE_TASK_XP = 100
DIFFICULTY_MULTIPLIERS = {"easy": 0.75, "medium": 1.0, "hard": 1.5}
AVG_TASK_MINUTES = 15

UnlockCallback = Callable[[UnlockNotification], None]


def _percent(part: int, whole: int) -> int:
    """Integer percentage rounded half-up."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def task_xp(task: Task) -> int:
    return _round_half_up(BASE_TASK_XP * DIFFICULTY_MULTIPLIERS.get(task.difficulty, 1.0))


def calculate_xp_earned(tasks: Sequence[Task]) -> int:
    return sum(task_xp(t) for t in tasks if t.status == "completed")


def evaluate_unlock_condition(tasks: Sequence[Task]) -> UnlockConditionResult:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == "completed")
    return UnlockConditionResult(
        can_unlock=total > 0 and completed == total,
        completed_tasks=completed,
        total_tasks=total,
        completion_percentage=_percent(completed, total),
        remaining_tasks=total - completed,
    )


class UnlockEvaluator:
    def __init__(self, config: Optional[dict] = None) -> None:
        self._cfg = self._parse_config(config or {})
        self._lock = threading.Lock()
        self._callback: Optional[UnlockCallback] = None
        self._previous_percentage = 0
        self._notified: set[int] = set()

    @staticmethod
    def _parse_config(config: dict) -> UnlockConfig:
        return UnlockConfig(
            auto_unlock_on_complete=bool(config.get("auto_unlock_on_complete", True)),
            partial_unlock_thresholds=tuple(normalize_thresholds(config.get("partial_unlock_thresholds", [50, 75]))),
            show_notifications=bool(config.get("show_notifications", True)),
        )

    def get_config(self) -> UnlockConfig:
        with self._lock:
            return self._cfg

    def update_config(self, config: dict) -> None:
        with self._lock:
            cfg = self._cfg
            if "partial_unlock_thresholds" in config:
                cfg = replace(cfg, partial_unlock_thresholds=tuple(normalize_thresholds(config["partial_unlock_thresholds"])))
            if "auto_unlock_on_complete" in config:
                cfg = replace(cfg, auto_unlock_on_complete=bool(config["auto_unlock_on_complete"]))
            if "show_notifications" in config:
                cfg = replace(cfg, show_notifications=bool(config["show_notifications"]))
            self._cfg = cfg

    def is_auto_unlock_enabled(self) -> bool:
        return self.get_config().auto_unlock_on_complete

    def evaluate(self, tasks: Sequence[Task]) -> UnlockConditionResult:
        return evaluate_unlock_condition(tasks)

    def are_all_tasks_completed(self, tasks: Sequence[Task]) -> bool:
        return len(tasks) > 0 and all(t.status == "completed" for t in tasks)

    def calculate_xp_earned(self, tasks: Sequence[Task]) -> int:
        return calculate_xp_earned(tasks)

    def check_partial_unlock_threshold(self, tasks: Sequence[Task]) -> Optional[int]:
        """Marks and returns the first newly crossed threshold, if any."""
        pct = evaluate_unlock_condition(tasks).completion_percentage
        with self._lock:
            return self._claim_threshold(pct)

    def _claim_threshold(self, pct: int) -> Optional[int]:
        for threshold in self._cfg.partial_unlock_thresholds:
            if pct >= threshold and self._previous_percentage < threshold and threshold not in self._notified:
                self._notified.add(threshold)
                return threshold
        return None

    def process(self, tasks: Sequence[Task]) -> Optional[UnlockNotification]:
        """Evaluate one observed task-list change.

        Full unlock takes priority over thresholds. Only unlock-type
        notifications go to the registered callback; a plain progress update
        is only returned. Returns None when the percentage is unchanged.
        """
        cond = evaluate_unlock_condition(tasks)
        notification: Optional[UnlockNotification] = None

        with self._lock:
            if cond.can_unlock:
                notification = UnlockNotification(
                    type="full_unlock",
                    message="All tasks completed! Focus Mode unlocked.",
                    completed_tasks=cond.completed_tasks,
                    total_tasks=cond.total_tasks,
                    xp_earned=calculate_xp_earned(tasks),
                )
            else:
                threshold = self._claim_threshold(cond.completion_percentage)
                if threshold is not None:
                    notification = UnlockNotification(
                        type="partial_unlock",
                        message=f"{threshold}% complete! Keep going!",
                        completed_tasks=cond.completed_tasks,
                        total_tasks=cond.total_tasks,
                        threshold=threshold,
                    )
                elif cond.completion_percentage != self._previous_percentage:
                    notification = UnlockNotification(
                        type="progress_update",
                        message=f"{cond.completed_tasks}/{cond.total_tasks} tasks completed",
                        completed_tasks=cond.completed_tasks,
                        total_tasks=cond.total_tasks,
                    )

            if notification is None:
                return None
            self._previous_percentage = cond.completion_percentage
            callback = self._callback

        if notification.is_unlock:
            log.info("Unlock event %s (%d/%d)", notification.type, cond.completed_tasks, cond.total_tasks)
            if callback is not None:
                try:
                    callback(notification)
                except Exception:
                    log.exception("Unlock callback failed")
        return notification

    def set_unlock_callback(self, callback: UnlockCallback) -> None:
        with self._lock:
            self._callback = callback

    def clear_unlock_callback(self) -> None:
        with self._lock:
            self._callback = None

    def reset_tracking(self) -> None:
        with self._lock:
            self._previous_percentage = 0
            self._notified.clear()

    def reset(self) -> None:
        self.reset_tracking()
        self.clear_unlock_callback()

    def get_estimated_time_remaining(self, tasks: Sequence[Task]) -> int:
        """Milliseconds, assuming every unfinished task takes the average."""
        remaining = sum(1 for t in tasks if t.status != "completed")
        return remaining * AVG_TASK_MINUTES * 60 * 1000

    def format_time_remaining(self, tasks: Sequence[Task]) -> str:
        minutes = _round_half_up(self.get_estimated_time_remaining(tasks) / 60000)
        if minutes < 60:
            return f"~{minutes}m"
        hours, rest = divmod(minutes, 60)
        return f"~{hours}h {rest}m"
