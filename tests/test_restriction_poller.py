import threading
import time

from packages.core.monitor.restriction_poller import RestrictionPoller
from packages.core.monitor.types import ProcessInfo, TerminationResult
from packages.shared.config import RestrictedApp, default_restricted_apps

STEAM = ProcessInfo(pid=22, display_name="steam", executable_name="steam.exe")
EPIC = ProcessInfo(pid=40, display_name="EpicGamesLauncher", executable_name="epicgameslauncher.exe")
EDITOR = ProcessInfo(pid=50, display_name="code", executable_name="code.exe")


class FakeScanner:
    def __init__(self, *batches, fail_first=False):
        self._batches = list(batches) or [[]]
        self._fail_first = fail_first
        self.calls = 0

    def scan(self):
        self.calls += 1
        if self._fail_first and self.calls == 1:
            raise RuntimeError("scanner exploded")
        idx = min(self.calls - 1, len(self._batches) - 1)
        return list(self._batches[idx])


class FakeTerminator:
    def __init__(self, success=True):
        self.success = success
        self.calls = []

    def terminate(self, pid, display_name, graceful_first=True):
        self.calls.append((pid, display_name, graceful_first))
        return TerminationResult(
            pid=pid,
            process_name=display_name,
            success=self.success,
            error=None if self.success else "access denied",
        )


def make_poller(scanner, terminator=None, **config):
    return RestrictionPoller(config, scanner=scanner, terminator=terminator or FakeTerminator())


def test_sweep_orders_callbacks_per_match():
    events = []
    terminator = FakeTerminator()
    poller = make_poller(FakeScanner([EDITOR, STEAM, EPIC]), terminator)

    results = poller.terminate_restricted_processes(
        default_restricted_apps(),
        on_detected=lambda p: events.append(("detected", p.pid)),
        on_terminated=lambda r: events.append(("terminated", r.pid)),
    )

    assert events == [("detected", 22), ("terminated", 22), ("detected", 40), ("terminated", 40)]
    assert [r.pid for r in results] == [22, 40]
    assert terminator.calls == [(22, "steam", True), (40, "EpicGamesLauncher", True)]


def test_sweep_uses_graceful_flag_from_config():
    terminator = FakeTerminator()
    poller = make_poller(FakeScanner([STEAM]), terminator, graceful_termination_first=False)
    poller.terminate_restricted_processes(default_restricted_apps())
    assert terminator.calls == [(22, "steam", False)]


def test_failed_termination_is_reported_not_raised():
    poller = make_poller(FakeScanner([STEAM]), FakeTerminator(success=False))
    results = poller.terminate_restricted_processes(default_restricted_apps())
    assert results[0].success is False
    assert results[0].error == "access denied"


def test_raising_callback_does_not_block_termination(caplog):
    terminator = FakeTerminator()
    poller = make_poller(FakeScanner([STEAM]), terminator)

    def boom(_):
        raise ValueError("ui gone")

    poller.terminate_restricted_processes(default_restricted_apps(), on_detected=boom)
    assert terminator.calls == [(22, "steam", True)]
    assert "callback failed" in caplog.text


def test_detect_does_not_terminate():
    terminator = FakeTerminator()
    poller = make_poller(FakeScanner([STEAM, EDITOR]), terminator)
    assert poller.detect_restricted_processes(default_restricted_apps()) == [STEAM]
    assert terminator.calls == []


def test_poll_interval_is_clamped():
    poller = make_poller(FakeScanner(), poll_interval_ms=100)
    assert poller.get_config().poll_interval_ms == 500
    poller.set_poll_interval(2000)
    assert poller.get_config().poll_interval_ms == 2000
    poller.set_poll_interval(-5)
    assert poller.get_config().poll_interval_ms == 500


def test_default_config():
    cfg = make_poller(FakeScanner()).get_config()
    assert cfg.poll_interval_ms == 1500
    assert cfg.graceful_termination_first is True


def test_start_runs_first_tick_immediately_and_stop_goes_idle():
    done = threading.Event()
    results = []

    def on_terminated(result):
        results.append(result)
        done.set()

    poller = make_poller(FakeScanner([STEAM]))
    poller.start(default_restricted_apps(), on_terminated=on_terminated)
    try:
        assert poller.is_active()
        assert done.wait(2.0)
    finally:
        poller.dispose()

    assert not poller.is_active()
    assert poller.get_state().status == "IDLE"
    assert results[0].pid == 22


def test_second_start_is_ignored_with_warning(caplog):
    first = threading.Event()
    second_calls = []
    poller = make_poller(FakeScanner([STEAM]))
    poller.start(default_restricted_apps(), on_detected=lambda p: first.set())
    try:
        poller.start(default_restricted_apps(), on_detected=second_calls.append)
        assert first.wait(2.0)
        assert "already running" in caplog.text
        assert poller.is_active()
    finally:
        poller.dispose()
    assert second_calls == []


def test_stop_is_safe_when_idle():
    poller = make_poller(FakeScanner())
    poller.stop()
    poller.stop()
    assert not poller.is_active()


def test_no_ticks_after_stop():
    ticked = threading.Event()
    scanner = FakeScanner([STEAM])
    poller = make_poller(scanner, poll_interval_ms=500)
    poller.start(default_restricted_apps(), on_terminated=lambda r: ticked.set())
    assert ticked.wait(2.0)
    poller.dispose()
    calls = scanner.calls
    time.sleep(0.7)
    assert scanner.calls == calls


def test_update_restricted_applies_to_later_ticks():
    hit = threading.Event()
    poller = make_poller(FakeScanner([EDITOR]), poll_interval_ms=500)
    poller.start(default_restricted_apps(), on_detected=lambda p: hit.set())
    try:
        poller.update_restricted([RestrictedApp(name="VS Code", executable_name="code.exe")])
        assert hit.wait(3.0)
    finally:
        poller.dispose()


def test_loop_survives_failing_tick():
    hit = threading.Event()
    poller = make_poller(FakeScanner([STEAM], fail_first=True), poll_interval_ms=500)
    poller.start(default_restricted_apps(), on_terminated=lambda r: hit.set())
    try:
        assert hit.wait(3.0)
    finally:
        poller.dispose()


def test_restart_after_stop():
    hits = threading.Event()
    poller = make_poller(FakeScanner([STEAM]))
    poller.start(default_restricted_apps())
    poller.stop()
    poller.start(default_restricted_apps(), on_terminated=lambda r: hits.set())
    try:
        assert poller.is_active()
        assert hits.wait(2.0)
    finally:
        poller.dispose()


class SlowTerminator:
    def __init__(self, delay_s):
        self._delay_s = delay_s
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.finished_at = []

    def terminate(self, pid, display_name, graceful_first=True):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self._delay_s)
        with self._lock:
            self.active -= 1
            self.finished_at.append(time.monotonic())
        return TerminationResult(pid=pid, process_name=display_name, success=True)


class TimedScanner(FakeScanner):
    def __init__(self, *batches, until=3):
        super().__init__(*batches)
        self.started_at = []
        self.enough = threading.Event()
        self._until = until

    def scan(self):
        self.started_at.append(time.monotonic())
        if len(self.started_at) >= self._until:
            self.enough.set()
        return super().scan()


def test_ticks_never_overlap_and_wait_a_full_interval():
    scanner = TimedScanner([STEAM], until=3)
    terminator = SlowTerminator(delay_s=0.4)
    poller = make_poller(scanner, terminator, poll_interval_ms=500)
    poller.start(default_restricted_apps())
    try:
        assert scanner.enough.wait(5.0)
    finally:
        poller.dispose()

    assert terminator.max_active == 1
    for finished, next_scan in zip(terminator.finished_at, scanner.started_at[1:]):
        assert next_scan - finished >= 0.45


def test_failed_termination_is_retried_once_per_tick():
    scanner = FakeScanner([STEAM])
    terminator = FakeTerminator(success=False)
    scans_at_call = []
    attempts = threading.Event()

    def on_terminated(result):
        scans_at_call.append(scanner.calls)
        if len(scans_at_call) >= 3:
            attempts.set()

    poller = make_poller(scanner, terminator, poll_interval_ms=500)
    poller.start(default_restricted_apps(), on_terminated=on_terminated)
    try:
        assert attempts.wait(5.0)
    finally:
        poller.dispose()

    assert len(scans_at_call) >= 3
    assert scans_at_call == list(range(1, len(scans_at_call) + 1))
    assert {pid for pid, _, _ in terminator.calls} == {22}
