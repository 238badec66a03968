from __future__ import annotations

from typing import List, Sequence

from packages.shared.config import RestrictedApp
from .types import ProcessInfo


def enabled_executables(restricted: Sequence[RestrictedApp]) -> set[str]:
    return {a.executable_name.strip().lower() for a in restricted if a.is_enabled and a.executable_name.strip()}


def match_restricted(running: Sequence[ProcessInfo], restricted: Sequence[RestrictedApp]) -> List[ProcessInfo]:
    """Running processes whose executable matches an enabled restriction.

    Result order follows ``running``. A process matching several entries is
    reported once.
    """
    wanted = enabled_executables(restricted)
    if not wanted:
        return []
    return [p for p in running if p.executable_name.lower() in wanted]
