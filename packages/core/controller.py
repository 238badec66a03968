"""
Composition root for a focus session.

Wires the focus session, the restriction poller and the unlock evaluator
together: starting focus arms the poller, task changes run through the
evaluator, and a full unlock (or an emergency unlock) stops both.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from packages.shared.config import AppConfig
from packages.shared.store import FocusStateStore
from packages.core.focus.session_manager import FocusSessionManager
from packages.core.focus.types import FocusSession
from packages.core.monitor.restriction_poller import RestrictionPoller
from packages.core.monitor.types import ProcessInfo, TerminationResult
from packages.core.notifications.message_builder import build_termination_failure_payload, build_unlock_payload
from packages.core.notifications.notifier import LogNotifier, Notifier
from packages.core.unlock.evaluator import UnlockEvaluator
from packages.core.unlock.types import Task, UnlockNotification

log = logging.getLogger(__name__)


class FocusLockController:
    def __init__(
        self,
        cfg: AppConfig,
        poller: Optional[RestrictionPoller] = None,
        evaluator: Optional[UnlockEvaluator] = None,
        sessions: Optional[FocusSessionManager] = None,
        notifier: Optional[Notifier] = None,
        state_store: Optional[FocusStateStore] = None,
    ) -> None:
        self.cfg = cfg
        self.poller = poller or RestrictionPoller(cfg.to_monitor_config())
        self.evaluator = evaluator or UnlockEvaluator(cfg.to_unlock_config())
        self.sessions = sessions or FocusSessionManager(cfg.to_focus_config(), restricted_apps=cfg.restricted_apps)
        self.notifier: Notifier = notifier or LogNotifier()
        self._state_store = state_store

        if self._state_store is not None:
            self.sessions.restore(self._state_store.load())
        self.evaluator.set_unlock_callback(self._on_unlock)

    def is_active(self) -> bool:
        return self.sessions.is_active()

    def start_focus(self) -> None:
        self.sessions.start()
        self.evaluator.reset_tracking()
        apps = self.sessions.get_enabled_restricted_apps()
        if not apps:
            log.warning("Focus started with no enabled restricted apps")
        self.poller.start(apps, self._on_detected, self._on_terminated)

    def stop_focus(self, was_natural: bool, tasks_completed: int) -> Optional[FocusSession]:
        self.poller.stop()
        session = self.sessions.stop(was_natural, tasks_completed)
        if session is not None:
            self._persist()
        return session

    def emergency_unlock(self) -> bool:
        if not self.sessions.emergency_unlock():
            return False
        self.poller.stop()
        self._persist()
        return True

    def on_tasks_changed(self, tasks: Sequence[Task]) -> Optional[UnlockNotification]:
        notification = self.evaluator.process(tasks)
        if notification is None:
            return None
        if notification.type == "progress_update":
            log.info("Progress: %s", notification.message)
        elif notification.type == "full_unlock" and self.evaluator.is_auto_unlock_enabled():
            if self.sessions.is_active():
                self.stop_focus(was_natural=True, tasks_completed=notification.completed_tasks)
        return notification

    def tick(self) -> None:
        self.sessions.tick()

    def refresh_restricted_apps(self) -> None:
        self.poller.update_restricted(self.sessions.get_enabled_restricted_apps())

    def dispose(self) -> None:
        self.poller.dispose()
        self.evaluator.reset()

    def _persist(self) -> None:
        if self._state_store is None:
            return
        try:
            self._state_store.save(self.sessions.snapshot())
        except OSError:
            log.exception("Failed to save focus history to %s", self._state_store.path())

    def _surface(self, payload: dict) -> None:
        if self.evaluator.get_config().show_notifications:
            self.notifier.notify(payload["title"], payload["body"])

    def _on_unlock(self, notification: UnlockNotification) -> None:
        self._surface(build_unlock_payload(notification))

    def _on_detected(self, proc: ProcessInfo) -> None:
        log.info("Restricted app detected: %s (pid %d)", proc.display_name, proc.pid)

    def _on_terminated(self, result: TerminationResult) -> None:
        if result.success:
            log.info("Closed %s (pid %d)", result.process_name, result.pid)
            return
        self._surface(build_termination_failure_payload(result))
