from __future__ import annotations

import threading
import time
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence

from packages.shared.config import (
    DEFAULT_POLL_INTERVAL_MS,
    RestrictedApp,
    clamp_poll_interval,
)
from .types import MonitorConfig, MonitorState, ProcessInfo, TerminationResult
from .process_detector import ProcessScanner
from .matcher import match_restricted
from .terminator import ProcessTerminator


log = logging.getLogger(__name__)

DetectedCallback = Callable[[ProcessInfo], None]
TerminatedCallback = Callable[[TerminationResult], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _PollRun:
    """One start/stop cycle. ``token`` is set once the run is cancelled."""
    token: threading.Event
    restricted: tuple[RestrictedApp, ...]
    on_detected: Optional[DetectedCallback] = None
    on_terminated: Optional[TerminatedCallback] = None


class RestrictionPoller:
    """Background loop that terminates restricted processes while running.

    Each tick scans, matches and terminates matches one at a time in scan
    order. The next tick is armed only after the current one completes, so
    ticks never overlap.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        scanner: Optional[ProcessScanner] = None,
        terminator: Optional[ProcessTerminator] = None,
    ) -> None:
        self._cfg = self._parse_config(config or {})
        self._scanner = scanner or ProcessScanner()
        self._terminator = terminator or ProcessTerminator(wait_timeout_s=self._cfg.termination_wait_ms / 1000.0)
        self._state = MonitorState()
        self._lock = threading.Lock()

        self._run: Optional[_PollRun] = None
        self._thread: Optional[threading.Thread] = None

    @staticmethod
    def _parse_config(config: dict) -> MonitorConfig:
        return MonitorConfig(
            poll_interval_ms=clamp_poll_interval(config.get("poll_interval_ms", DEFAULT_POLL_INTERVAL_MS)),
            graceful_termination_first=bool(config.get("graceful_termination_first", True)),
            termination_wait_ms=max(0, int(config.get("termination_wait_ms", 3000))),
        )

    def update_config(self, config: dict) -> None:
        with self._lock:
            merged = {
                "poll_interval_ms": self._cfg.poll_interval_ms,
                "graceful_termination_first": self._cfg.graceful_termination_first,
                "termination_wait_ms": self._cfg.termination_wait_ms,
                **config,
            }
            self._cfg = self._parse_config(merged)

    def set_poll_interval(self, interval_ms: int) -> None:
        with self._lock:
            self._cfg = replace(self._cfg, poll_interval_ms=clamp_poll_interval(interval_ms))

    def get_config(self) -> MonitorConfig:
        with self._lock:
            return self._cfg

    def get_state(self) -> MonitorState:
        with self._lock:
            return MonitorState(
                status=self._state.status,
                ticks=self._state.ticks,
                last_tick_ms=self._state.last_tick_ms,
            )

    def is_active(self) -> bool:
        with self._lock:
            return self._state.status == "RUNNING"

    def start(
        self,
        restricted: Sequence[RestrictedApp],
        on_detected: Optional[DetectedCallback] = None,
        on_terminated: Optional[TerminatedCallback] = None,
    ) -> None:
        with self._lock:
            if self._state.status == "RUNNING":
                log.warning("Restriction poller is already running")
                return
            run = _PollRun(
                token=threading.Event(),
                restricted=tuple(restricted),
                on_detected=on_detected,
                on_terminated=on_terminated,
            )
            self._run = run
            self._state.status = "RUNNING"
            self._state.ticks = 0
            self._state.last_tick_ms = None

        self._thread = threading.Thread(target=self._loop, args=(run,), name="RestrictionPoller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        with self._lock:
            run = self._run
            self._run = None
            self._state.status = "IDLE"
            if run is None:
                return
            run.on_detected = None
            run.on_terminated = None
        run.token.set()
        log.info("Restriction poller stop requested")

    def dispose(self, timeout_s: float = 5.0) -> None:
        self.stop()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout_s)

    def update_restricted(self, restricted: Sequence[RestrictedApp]) -> None:
        """Swap the restriction snapshot used by later ticks of the current run."""
        with self._lock:
            if self._run is not None:
                self._run.restricted = tuple(restricted)

    def detect_restricted_processes(self, restricted: Sequence[RestrictedApp]) -> List[ProcessInfo]:
        return match_restricted(self._scanner.scan(), restricted)

    def terminate_restricted_processes(
        self,
        restricted: Sequence[RestrictedApp],
        on_detected: Optional[DetectedCallback] = None,
        on_terminated: Optional[TerminatedCallback] = None,
    ) -> List[TerminationResult]:
        """Run a single synchronous sweep, outside of any polling run."""
        run = _PollRun(
            token=threading.Event(),
            restricted=tuple(restricted),
            on_detected=on_detected,
            on_terminated=on_terminated,
        )
        return self._sweep(run)

    def _sweep(self, run: _PollRun) -> List[TerminationResult]:
        with self._lock:
            restricted = run.restricted
            graceful = self._cfg.graceful_termination_first

        results: List[TerminationResult] = []
        for proc in self.detect_restricted_processes(restricted):
            if run.token.is_set():
                break
            self._safe_call(run.on_detected, proc)
            result = self._terminator.terminate(proc.pid, proc.display_name, graceful)
            results.append(result)
            self._safe_call(run.on_terminated, result)
        return results

    @staticmethod
    def _safe_call(cb: Optional[Callable], arg: object) -> None:
        if cb is None:
            return
        try:
            cb(arg)
        except Exception:
            log.exception("Restriction poller callback failed")

    def _loop(self, run: _PollRun) -> None:
        log.info("Restriction poller started with %d restricted apps", len(run.restricted))
        while not run.token.is_set():
            try:
                results = self._sweep(run)
                if results:
                    log.debug("Tick handled %d restricted processes", len(results))
            except Exception:
                log.exception("Restriction poll tick failed")

            with self._lock:
                if self._run is run:
                    self._state.ticks += 1
                    self._state.last_tick_ms = _now_ms()
                interval_s = self._cfg.poll_interval_ms / 1000.0

            if run.token.wait(interval_s):
                break
        log.info("Restriction poller stopped")
