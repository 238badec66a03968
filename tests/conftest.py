from __future__ import annotations

import pytest

from packages.core.unlock.types import Task


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_home(tmp_path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path))
    return tmp_path / "FocusLock"


@pytest.fixture
def make_tasks():
    """make_tasks("ccp", "ehm") -> three tasks: completed, completed, pending."""
    status_codes = {"c": "completed", "p": "pending", "x": "cancelled"}
    difficulty_codes = {"e": "easy", "m": "medium", "h": "hard"}

    def _make(statuses: str, difficulties: str = "") -> list[Task]:
        tasks = []
        for i, code in enumerate(statuses):
            diff = difficulty_codes[difficulties[i]] if i < len(difficulties) else "medium"
            tasks.append(Task(id=f"t{i}", status=status_codes[code], difficulty=diff))
        return tasks

    return _make
