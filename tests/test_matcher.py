from packages.core.monitor.matcher import match_restricted
from packages.core.monitor.types import ProcessInfo
from packages.shared.config import RestrictedApp, default_restricted_apps


def proc(pid, exe):
    return ProcessInfo(pid=pid, display_name=exe.rsplit(".", 1)[0], executable_name=exe.lower())


RUNNING = [
    proc(10, "explorer.exe"),
    proc(22, "steam.exe"),
    proc(31, "discord.exe"),
    proc(40, "epicgameslauncher.exe"),
    proc(41, "steam.exe"),
]


def test_matches_enabled_presets_in_scan_order():
    found = match_restricted(RUNNING, default_restricted_apps())
    assert [p.pid for p in found] == [22, 40, 41]


def test_mixed_case_executable_names_match():
    apps = [RestrictedApp(name="Epic", executable_name="EpicGamesLauncher.EXE")]
    assert [p.pid for p in match_restricted(RUNNING, apps)] == [40]


def test_disabled_app_does_not_match():
    apps = default_restricted_apps()
    apps = [a.model_copy(update={"is_enabled": False}) if a.id == "steam" else a for a in apps]
    assert [p.pid for p in match_restricted(RUNNING, apps)] == [40]


def test_process_matching_several_entries_reported_once():
    apps = [
        RestrictedApp(name="Steam", executable_name="steam.exe"),
        RestrictedApp(name="Steam again", executable_name="STEAM.exe"),
    ]
    assert [p.pid for p in match_restricted(RUNNING, apps)] == [22, 41]


def test_result_order_ignores_restriction_order():
    apps = [
        RestrictedApp(name="Discord", executable_name="discord.exe"),
        RestrictedApp(name="Steam", executable_name="steam.exe"),
    ]
    assert [p.pid for p in match_restricted(RUNNING, apps)] == [22, 31, 41]


def test_no_partial_name_matches():
    apps = [RestrictedApp(name="Steam", executable_name="steam")]
    assert match_restricted(RUNNING, apps) == []


def test_deterministic_and_inputs_untouched():
    apps = default_restricted_apps()
    running = list(RUNNING)
    first = match_restricted(running, apps)
    second = match_restricted(running, apps)
    assert first == second
    assert running == RUNNING
    assert apps == default_restricted_apps()


def test_empty_inputs():
    assert match_restricted([], default_restricted_apps()) == []
    assert match_restricted(RUNNING, []) == []
