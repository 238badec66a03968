from __future__ import annotations

import logging
from typing import Callable

import psutil

from .types import TerminationResult

log = logging.getLogger(__name__)


class ProcessTerminator:
    """Terminates a single process, escalating from graceful to forced.

    A process that no longer exists counts as terminated. Permission errors
    and processes that outlive ``wait_timeout_s`` are reported as failures.
    """

    def __init__(
        self,
        process_factory: Callable[[int], psutil.Process] = psutil.Process,
        wait_timeout_s: float = 3.0,
    ) -> None:
        self._process_factory = process_factory
        self._wait_timeout_s = wait_timeout_s

    def terminate(self, pid: int, display_name: str, graceful_first: bool = True) -> TerminationResult:
        if graceful_first:
            result = self._attempt(pid, display_name, forced=False)
            if result.success:
                return result
            log.info("Graceful termination of %s (pid %d) failed: %s; forcing", display_name, pid, result.error)

        result = self._attempt(pid, display_name, forced=True)
        if not result.success:
            log.warning("Failed to terminate %s (pid %d): %s", display_name, pid, result.error)
        return result

    def _attempt(self, pid: int, name: str, forced: bool) -> TerminationResult:
        try:
            proc = self._process_factory(pid)
            if forced:
                proc.kill()
            else:
                proc.terminate()
            proc.wait(timeout=self._wait_timeout_s)
        except psutil.NoSuchProcess:
            # Covers zombies too; the process is gone either way.
            log.debug("Process %s (pid %d) already exited", name, pid)
        except psutil.AccessDenied:
            return TerminationResult(pid=pid, process_name=name, success=False, error="access denied")
        except psutil.TimeoutExpired:
            return TerminationResult(
                pid=pid,
                process_name=name,
                success=False,
                error=f"still running after {self._wait_timeout_s:g}s",
            )
        except (psutil.Error, OSError) as e:
            return TerminationResult(pid=pid, process_name=name, success=False, error=str(e) or type(e).__name__)
        return TerminationResult(pid=pid, process_name=name, success=True)
