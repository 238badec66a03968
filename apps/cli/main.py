"""Command-line front end for Focus Lock."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from packages.core.controller import FocusLockController
from packages.core.focus.session_manager import FocusSessionManager, format_duration
from packages.core.logging_ import setup_logging
from packages.core.monitor.restriction_poller import RestrictionPoller
from packages.core.notifications.notifier import default_notifier
from packages.core.unlock.types import Task
from packages.shared.config import AppConfig, clamp_poll_interval
from packages.shared.store import ConfigStore, FocusStateStore

log = logging.getLogger(__name__)

app = typer.Typer(help="Close distracting apps until your tasks are done.")
apps_app = typer.Typer(help="Manage the restricted app list.")
app.add_typer(apps_app, name="apps")

TICK_SECONDS = 1.0


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    setup_logging(verbose)


def load_tasks(path: Path) -> Optional[List[Task]]:
    """Parse a task file: a JSON list of tasks or an object with a "tasks" list.

    Returns None when the file cannot be read or parsed, e.g. mid-write.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        items = data.get("tasks", []) if isinstance(data, dict) else data
        return [Task.model_validate(item) for item in items]
    except (OSError, ValueError, ValidationError, AttributeError, TypeError):
        log.warning("Could not read tasks from %s", path, exc_info=True)
        return None


class TaskFileWatcher:
    """Yields the task list whenever the file's modification time changes."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._mtime: Optional[float] = None

    def poll(self) -> Optional[List[Task]]:
        try:
            mtime = self._path.stat().st_mtime
        except OSError:
            return None
        if mtime == self._mtime:
            return None
        tasks = load_tasks(self._path)
        if tasks is not None:
            self._mtime = mtime
        return tasks


def _load_manager(cfg: AppConfig) -> FocusSessionManager:
    return FocusSessionManager(cfg.to_focus_config(), restricted_apps=cfg.restricted_apps)


@app.command()
def run(
    tasks_file: Path = typer.Option(
        ...,
        "--tasks",
        exists=True,
        dir_okay=False,
        path_type=Path,
        help="JSON file with the task list; re-read whenever it changes.",
    ),
    interval_ms: Optional[int] = typer.Option(
        None,
        "--interval-ms",
        help="Restriction poll interval in milliseconds (minimum 500).",
    ),
) -> None:
    """Start a focus session and enforce it until every task is completed."""
    cfg = ConfigStore().load()
    if interval_ms is not None:
        cfg = cfg.model_copy(update={"poll_interval_ms": clamp_poll_interval(interval_ms)})

    controller = FocusLockController(cfg, notifier=default_notifier(), state_store=FocusStateStore())
    watcher = TaskFileWatcher(tasks_file)
    controller.start_focus()
    typer.echo("Focus session started. Complete your tasks to unlock.")

    on_cooldown = False
    try:
        while controller.is_active():
            try:
                tasks = watcher.poll()
                if tasks is not None:
                    notification = controller.on_tasks_changed(tasks)
                    if notification is not None:
                        typer.echo(notification.message)
                controller.tick()
                time.sleep(TICK_SECONDS)
            except KeyboardInterrupt:
                if controller.emergency_unlock():
                    typer.echo("Emergency unlock used. Focus session ended.")
                    break
                if on_cooldown:
                    typer.echo("Exiting; this session was not recorded.")
                    break
                on_cooldown = True
                remaining = controller.sessions.get_cooldown_remaining()
                typer.echo(
                    f"Emergency unlock is on cooldown ({format_duration(remaining)} left). "
                    "Press Ctrl+C again to quit anyway."
                )
    finally:
        controller.dispose()

    typer.echo(f"Total focus time: {controller.sessions.get_total_focus_time_formatted()}")


@app.command()
def scan() -> None:
    """List running processes that match enabled restricted apps."""
    cfg = ConfigStore().load()
    manager = _load_manager(cfg)
    poller = RestrictionPoller(cfg.to_monitor_config())
    found = poller.detect_restricted_processes(manager.get_enabled_restricted_apps())
    if not found:
        typer.echo("No restricted apps running.")
        return
    for proc in found:
        typer.echo(f"{proc.pid:>7}  {proc.display_name}  ({proc.executable_name})")


@app.command()
def history() -> None:
    """Print past focus sessions."""
    manager = _load_manager(ConfigStore().load())
    manager.restore(FocusStateStore().load())
    sessions = manager.get_session_history()
    if not sessions:
        typer.echo("No focus sessions recorded yet.")
        return
    for s in sessions:
        started = datetime.fromtimestamp(s.started_at / 1000).strftime("%Y-%m-%d %H:%M")
        how = "completed" if s.was_unlocked_naturally else "unlocked early"
        typer.echo(f"{started}  {format_duration(s.duration):>7}  {s.tasks_completed} tasks  {how}")
    typer.echo(f"Total focus time: {manager.get_total_focus_time_formatted()}")


@apps_app.command("list")
def list_apps() -> None:
    """Show restricted apps."""
    cfg = ConfigStore().load()
    for a in cfg.restricted_apps:
        state = "on " if a.is_enabled else "off"
        preset = " (preset)" if a.is_preset else ""
        typer.echo(f"[{state}] {a.id:<16} {a.name} - {a.executable_name}{preset}")


@apps_app.command("add")
def add_app(
    name: str = typer.Argument(..., help="Display name, e.g. Steam."),
    executable: str = typer.Argument(..., help="Executable name, e.g. steam.exe."),
    disabled: bool = typer.Option(False, "--disabled", help="Add without enabling it."),
) -> None:
    """Add a custom restricted app."""
    store = ConfigStore()
    cfg = store.load()
    manager = _load_manager(cfg)
    try:
        added = manager.add_restricted_app(name, executable, is_enabled=not disabled)
    except ValidationError as e:
        typer.echo(f"Invalid app: {e.errors()[0]['msg']}", err=True)
        raise typer.Exit(code=1)
    store.save(cfg.model_copy(update={"restricted_apps": manager.get_restricted_apps()}))
    typer.echo(f"Added {added.name} ({added.id}).")


@apps_app.command("remove")
def remove_app(app_id: str = typer.Argument(..., help="Id shown by `apps list`.")) -> None:
    """Remove a custom restricted app. Presets can only be disabled."""
    store = ConfigStore()
    cfg = store.load()
    manager = _load_manager(cfg)
    if not manager.remove_restricted_app(app_id):
        typer.echo(f"Nothing removed: {app_id} is unknown or a preset.", err=True)
        raise typer.Exit(code=1)
    store.save(cfg.model_copy(update={"restricted_apps": manager.get_restricted_apps()}))
    typer.echo(f"Removed {app_id}.")


@apps_app.command("toggle")
def toggle_app(app_id: str = typer.Argument(..., help="Id shown by `apps list`.")) -> None:
    """Enable or disable a restricted app."""
    store = ConfigStore()
    cfg = store.load()
    manager = _load_manager(cfg)
    toggled = manager.toggle_restricted_app(app_id)
    if toggled is None:
        typer.echo(f"Unknown app: {app_id}", err=True)
        raise typer.Exit(code=1)
    store.save(cfg.model_copy(update={"restricted_apps": manager.get_restricted_apps()}))
    typer.echo(f"{toggled.name} is now {'enabled' if toggled.is_enabled else 'disabled'}.")


if __name__ == "__main__":
    app()
