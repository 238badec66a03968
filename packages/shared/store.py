from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from packages.core.focus.types import FocusStateSnapshot
from packages.shared.config import AppConfig
from packages.shared.paths import config_path, focus_state_path, ensure_app_dirs

log = logging.getLogger(__name__)


class ConfigStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        if path is None:
            ensure_app_dirs()
        self._path = Path(path) if path is not None else config_path()

    def load(self) -> AppConfig:
        if not self._path.exists():
            cfg = AppConfig()
            self.save(cfg)
            return cfg

        try:
            raw = self._path.read_text(encoding="utf-8")
            data: Any = json.loads(raw)
            return AppConfig.model_validate(data)
        except Exception:
            log.exception("Config at %s is unreadable, restoring defaults", self._path)
            cfg = AppConfig()
            self.save(cfg)
            return cfg

    def save(self, cfg: AppConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(cfg.model_dump_json(indent=2), encoding="utf-8")

    def path(self) -> str:
        return str(self._path)


class FocusStateStore:
    """Session history, total focus time and the last emergency unlock."""

    def __init__(self, path: Optional[Path] = None) -> None:
        if path is None:
            ensure_app_dirs()
        self._path = Path(path) if path is not None else focus_state_path()

    def load(self) -> FocusStateSnapshot:
        if not self._path.exists():
            return FocusStateSnapshot()
        try:
            raw = self._path.read_text(encoding="utf-8")
            return FocusStateSnapshot.model_validate(json.loads(raw))
        except Exception:
            log.exception("Focus history at %s is unreadable, starting empty", self._path)
            return FocusStateSnapshot()

    def save(self, snapshot: FocusStateSnapshot) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")

    def path(self) -> str:
        return str(self._path)
