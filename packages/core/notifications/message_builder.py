from __future__ import annotations

from packages.core.monitor.types import TerminationResult
from packages.core.unlock.types import UnlockNotification

TITLE = "Focus Lock"


def build_unlock_payload(notification: UnlockNotification) -> dict:
    body_lines = [notification.message, f"{notification.completed_tasks}/{notification.total_tasks} tasks completed"]
    if notification.xp_earned is not None:
        body_lines.append(f"+{notification.xp_earned} XP")
    return {"title": TITLE, "body": "\n".join(body_lines)}


def build_termination_failure_payload(result: TerminationResult) -> dict:
    return {"title": TITLE, "body": f"Could not close {result.process_name}: {result.error or 'unknown error'}"}
