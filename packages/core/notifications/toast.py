from __future__ import annotations

import logging
from win10toast import ToastNotifier

log = logging.getLogger(__name__)


class ToastNotifierWin10:
    """Windows toast notifier. Only one toast is shown at a time; a
    notification arriving while another is visible is logged instead."""

    def __init__(self, duration_s: int = 6) -> None:
        self._toaster = ToastNotifier()
        self._duration_s = duration_s

    def notify(self, title: str, body: str) -> None:
        try:
            shown = self._toaster.show_toast(title, body, duration=self._duration_s, threaded=True)
        except Exception:
            log.exception("Failed to show toast notification")
            return
        if shown is False:
            log.info("Toast busy, dropped: %s: %s", title, body.replace("\n", " | "))
