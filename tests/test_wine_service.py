from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import allure
import pytest

from wine_bottles.bottles.models import Bottle, BottleArch, Runtime, WindowsVersion
from wine_bottles.bottles.wine import wine_tool
from wine_bottles.common import utc_now
from wine_bottles.orchestrator import Orchestrator
from wine_bottles.tasks.models import TaskFinished, TaskOutput

pytestmark = [
    allure.epic("Bottle Workflows"),
    allure.feature("Wine Commands"),
]

MakeExecutable = Callable[[Path, str], Path]


def _runtime(wine_path: Path) -> Runtime:
    return Runtime(
        runtime_id="rt",
        name="Wine",
        wine_path=str(wine_path),
        version="wine-9.0",
        root_path=str(wine_path.parent.parent),
        installed_at=utc_now(),
    )


def _bottle(orchestrator: Orchestrator, name: str, **kwargs) -> Bottle:
    return orchestrator.store.create_bottle(
        name=name,
        win_version=WindowsVersion.WIN10,
        arch=BottleArch.WIN64,
        runtime_id="test-runtime",
        **kwargs,
    )


def test_wine_tool_prefers_executable_sibling(
    tmp_path: Path,
    make_executable: MakeExecutable,
) -> None:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    wine = make_executable(bin_dir / "wine", "print('wine')")
    wineboot = make_executable(bin_dir / "wineboot", "print('boot')")

    assert wine_tool("wineboot", _runtime(wine)) == (str(wineboot), [])
    assert wine_tool("winecfg", _runtime(wine)) == (str(wine), ["winecfg"])


def test_wine_tool_ignores_non_executable_sibling(
    tmp_path: Path,
    make_executable: MakeExecutable,
) -> None:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    wine = make_executable(bin_dir / "wine", "print('wine')")
    (bin_dir / "winecfg").write_text("plain file", "utf-8")
    (bin_dir / "winecfg").chmod(0o644)

    assert wine_tool("winecfg", _runtime(wine)) == (str(wine), ["winecfg"])


def test_base_environment_merges_bottle_settings(orchestrator: Orchestrator) -> None:
    bottle = _bottle(orchestrator, "Env", environment={"WINEDEBUG": "-all"})
    bottle = replace(bottle, dll_overrides={"mscoree": ""})

    env = orchestrator.wine.base_environment(bottle)

    assert env == {
        "WINEDEBUG": "-all",
        "WINEPREFIX": str(orchestrator.store.prefix_path(bottle)),
        "WINEDLLOVERRIDES": "mscoree=",
    }


def test_base_environment_omits_empty_overrides(orchestrator: Orchestrator) -> None:
    bottle = _bottle(orchestrator, "Plain")

    assert "WINEDLLOVERRIDES" not in orchestrator.wine.base_environment(bottle)


def test_scan_shortcuts_finds_exe_files_in_both_program_files_trees(
    orchestrator: Orchestrator,
) -> None:
    bottle = _bottle(orchestrator, "Scan")
    drive_c = orchestrator.store.prefix_path(bottle) / "drive_c"
    for relative in ("Program Files/Zed/zed.EXE", "Program Files (x86)/App/app.exe"):
        target = drive_c / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"MZ")
    hidden = drive_c / "Program Files" / ".cache" / "hidden.exe"
    hidden.parent.mkdir(parents=True)
    hidden.write_bytes(b"MZ")

    shortcuts = orchestrator.wine.scan_shortcuts(bottle)

    assert [shortcut.name for shortcut in shortcuts] == ["app", "zed"]
    assert shortcuts[1].exe_path.endswith("zed.EXE")


def test_scan_shortcuts_without_program_files_is_empty(orchestrator: Orchestrator) -> None:
    assert orchestrator.wine.scan_shortcuts(_bottle(orchestrator, "Empty")) == []


def test_winetricks_runs_through_env_launcher(
    orchestrator: Orchestrator,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    make_executable: MakeExecutable,
) -> None:
    bin_dir = tmp_path / "path-bin"
    bin_dir.mkdir()
    make_executable(
        bin_dir / "winetricks",
        "import os, sys; print(' '.join(sys.argv[1:])); print(os.environ['WINEPREFIX'])",
    )
    monkeypatch.setenv("PATH", f"{bin_dir}:/usr/bin:/bin")
    bottle = _bottle(orchestrator, "Tricks")

    handle = orchestrator.wine.run_winetricks(bottle, "corefonts")
    events = list(handle.events)

    assert handle.title == "Winetricks corefonts"
    assert [event.text for event in events if isinstance(event, TaskOutput)] == [
        "-q corefonts",
        str(orchestrator.store.prefix_path(bottle)),
    ]
    assert events[-1] == TaskFinished(exit_code=0)
