from __future__ import annotations

import logging
import sys
from typing import Protocol

log = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None:
        ...


class LogNotifier:
    """Writes notifications to the log; used where no desktop toast exists."""

    def notify(self, title: str, body: str) -> None:
        log.info("%s: %s", title, body.replace("\n", " | "))


def default_notifier() -> Notifier:
    if sys.platform == "win32":
        from .toast import ToastNotifierWin10
        return ToastNotifierWin10()
    return LogNotifier()
