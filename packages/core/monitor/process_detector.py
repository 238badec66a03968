from __future__ import annotations

import logging
from typing import Callable, Iterable, List

import psutil

from .types import ProcessInfo

log = logging.getLogger(__name__)


def display_name_for(exe_name: str) -> str:
    if exe_name.lower().endswith(".exe"):
        return exe_name[:-4]
    return exe_name


class ProcessScanner:
    """Lists running processes. Never raises; a failed enumeration yields []."""

    def __init__(self, process_iter: Callable[..., Iterable] = psutil.process_iter) -> None:
        self._process_iter = process_iter

    def scan(self) -> List[ProcessInfo]:
        found: List[ProcessInfo] = []
        try:
            for p in self._process_iter(attrs=["pid", "name"]):
                try:
                    n = p.info.get("name")
                    pid = p.info.get("pid")
                    if not n or pid is None:
                        continue
                    name = str(n)
                    found.append(ProcessInfo(
                        pid=int(pid),
                        display_name=display_name_for(name),
                        executable_name=name.lower(),
                    ))
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
        except Exception:
            log.exception("Process scan failed")
            return []
        return found
