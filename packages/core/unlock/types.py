from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

TaskStatus = Literal["pending", "completed", "cancelled"]
TaskDifficulty = Literal["easy", "medium", "hard"]
NotificationType = Literal["progress_update", "partial_unlock", "full_unlock"]


class Task(BaseModel):
    """The slice of a task this core reads. Other fields are ignored."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    status: TaskStatus = "pending"
    difficulty: TaskDifficulty = "medium"
    title: str = ""


@dataclass(frozen=True)
class UnlockConfig:
    auto_unlock_on_complete: bool = True
    partial_unlock_thresholds: Tuple[int, ...] = (50, 75)
    show_notifications: bool = True


@dataclass(frozen=True)
class UnlockConditionResult:
    can_unlock: bool
    completed_tasks: int
    total_tasks: int
    completion_percentage: int
    remaining_tasks: int


@dataclass(frozen=True)
class UnlockNotification:
    type: NotificationType
    message: str
    completed_tasks: int
    total_tasks: int
    xp_earned: Optional[int] = None
    threshold: Optional[int] = None

    @property
    def is_unlock(self) -> bool:
        return self.type != "progress_update"
