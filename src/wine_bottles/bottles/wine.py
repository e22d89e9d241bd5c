"""Builds Wine task launches for a bottle."""

from __future__ import annotations

import os
from pathlib import Path
from uuid import uuid4

from wine_bottles.bottles.models import Bottle, Runtime, Shortcut
from wine_bottles.bottles.runtime import RuntimeManager
from wine_bottles.bottles.store import BottleStore
from wine_bottles.errors import UnsupportedOperationError
from wine_bottles.tasks.runner import TaskHandle, TaskRunner

PROGRAM_FILES_DIRS = ("drive_c/Program Files", "drive_c/Program Files (x86)")
WINETRICKS_LAUNCHER = "/usr/bin/env"


class WineService:
    """Translates bottle operations into streamed tasks."""

    def __init__(
        self,
        *,
        runtime_manager: RuntimeManager,
        task_runner: TaskRunner,
        store: BottleStore,
    ) -> None:
        self.runtime_manager = runtime_manager
        self.task_runner = task_runner
        self.store = store

    def create_prefix(self, bottle: Bottle) -> TaskHandle:
        runtime = self.runtime_manager.require_runtime()
        tool, tool_args = wine_tool("wineboot", runtime)
        env = self.base_environment(bottle)
        env["WINEARCH"] = bottle.arch.value
        return self._launch("Create Prefix", tool, [*tool_args, "-u"], env)

    def set_windows_version(self, bottle: Bottle) -> TaskHandle:
        runtime = self.runtime_manager.require_runtime()
        tool, tool_args = wine_tool("winecfg", runtime)
        return self._launch(
            "Set Windows Version",
            tool,
            [*tool_args, "-v", bottle.win_version.value],
            self.base_environment(bottle),
        )

    def run_installer(self, bottle: Bottle, installer: Path) -> TaskHandle:
        runtime = self.runtime_manager.require_runtime()
        extension = installer.suffix.lower()
        if extension == ".msi":
            return self._launch(
                "Install MSI",
                runtime.wine_path,
                ["msiexec", "/i", str(installer)],
                self.base_environment(bottle),
            )
        if extension == ".exe":
            return self._launch(
                "Install EXE",
                runtime.wine_path,
                [str(installer)],
                self.base_environment(bottle),
            )
        raise UnsupportedOperationError(f"Unsupported installer type: {installer.name}")

    def run_exe(self, bottle: Bottle, exe: Path, arguments: list[str] | None = None) -> TaskHandle:
        runtime = self.runtime_manager.require_runtime()
        return self._launch(
            "Run EXE",
            runtime.wine_path,
            [str(exe), *(arguments or [])],
            self.base_environment(bottle),
        )

    def run_winetricks(self, bottle: Bottle, verb: str) -> TaskHandle:
        self.runtime_manager.require_runtime()
        return self.task_runner.run(
            title=f"Winetricks {verb}",
            path=WINETRICKS_LAUNCHER,
            args=["winetricks", "-q", verb],
            env=self.base_environment(bottle),
        )

    def scan_shortcuts(self, bottle: Bottle) -> list[Shortcut]:
        prefix = self.store.prefix_path(bottle)
        shortcuts: list[Shortcut] = []
        for relative in PROGRAM_FILES_DIRS:
            root = prefix / relative
            if not root.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames[:] = [name for name in dirnames if not name.startswith(".")]
                for filename in filenames:
                    if filename.startswith(".") or not filename.lower().endswith(".exe"):
                        continue
                    exe_path = Path(dirpath) / filename
                    shortcuts.append(
                        Shortcut(
                            shortcut_id=str(uuid4()),
                            name=exe_path.stem,
                            exe_path=str(exe_path),
                        ),
                    )
        return sorted(shortcuts, key=lambda shortcut: shortcut.name.casefold())

    def base_environment(self, bottle: Bottle) -> dict[str, str]:
        env = dict(bottle.environment)
        env["WINEPREFIX"] = str(self.store.prefix_path(bottle))
        if bottle.dll_overrides:
            env["WINEDLLOVERRIDES"] = ";".join(
                f"{name}={mode}" for name, mode in bottle.dll_overrides.items()
            )
        return env

    def _launch(
        self,
        title: str,
        executable: str,
        args: list[str],
        env: dict[str, str],
    ) -> TaskHandle:
        path, wrapped_args = self.runtime_manager.command_for_executable(executable, args)
        return self.task_runner.run(title=title, path=path, args=wrapped_args, env=env)


def wine_tool(name: str, runtime: Runtime) -> tuple[str, list[str]]:
    """Prefer a sibling ``bin/<name>`` executable, else ``wine <name>``."""

    sibling = Path(runtime.wine_path).parent / name
    if sibling.is_file() and os.access(sibling, os.X_OK):
        return str(sibling), []
    return runtime.wine_path, [name]
