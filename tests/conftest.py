"""Shared test fixtures."""

from __future__ import annotations

import json
import stat
import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest

from wine_bottles.bottles.archive import ExportImportService
from wine_bottles.bottles.installer import RuntimeInstaller
from wine_bottles.bottles.models import Runtime
from wine_bottles.bottles.runtime import HostPlatform, RuntimeManager
from wine_bottles.bottles.store import BottleStore
from wine_bottles.common import utc_now
from wine_bottles.config import Settings
from wine_bottles.orchestrator import Orchestrator
from wine_bottles.tasks.executor import ProcessExecutor
from wine_bottles.tasks.ledger import TaskLedger
from wine_bottles.tasks.runner import TaskRunner

_FAKE_WINE_SOURCE = """\
import json
import os
import sys
from pathlib import Path

record = Path(os.environ["FAKE_WINE_RECORD"])
keys = ("WINEPREFIX", "WINEARCH", "WINEDLLOVERRIDES", "BOTTLE_FLAG")
with record.open("a", encoding="utf-8") as handle:
    entry = {"argv": sys.argv[1:], "env": {key: os.environ.get(key) for key in keys}}
    handle.write(json.dumps(entry) + "\\n")
print("fake wine " + " ".join(sys.argv[1:]))
fail_on = os.environ.get("FAKE_WINE_FAIL_ON", "")
sys.exit(3 if fail_on and fail_on in sys.argv[1:] else 0)
"""


@dataclass(slots=True)
class FakeWine:
    """Executable standing in for ``wine`` that records every invocation."""

    path: Path
    record_path: Path

    def calls(self) -> list[dict[str, object]]:
        if not self.record_path.exists():
            return []
        return [json.loads(line) for line in self.record_path.read_text("utf-8").splitlines()]


def write_executable(path: Path, python_source: str) -> Path:
    """Write a Python script runnable directly via a shell wrapper."""

    script = path.with_suffix(".py")
    script.write_text(python_source, "utf-8")
    path.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', "utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    configured = Settings.from_env(home=tmp_path / "home")
    configured.ensure_directories()
    return configured


@pytest.fixture()
def runner(settings: Settings) -> Iterator[TaskRunner]:
    with TaskRunner(
        logs_root=settings.logs_root,
        terminate_grace_seconds=settings.tasks.terminate_grace_seconds,
        drain_timeout_seconds=settings.tasks.drain_timeout_seconds,
    ) as task_runner:
        yield task_runner


@pytest.fixture()
def fake_wine(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeWine:
    bin_dir = tmp_path / "wine-runtime" / "bin"
    bin_dir.mkdir(parents=True)
    record_path = tmp_path / "wine-calls.jsonl"
    monkeypatch.setenv("FAKE_WINE_RECORD", str(record_path))
    monkeypatch.delenv("FAKE_WINE_FAIL_ON", raising=False)
    wine_path = write_executable(bin_dir / "wine", _FAKE_WINE_SOURCE)
    return FakeWine(path=wine_path, record_path=record_path)


@pytest.fixture()
def orchestrator(settings: Settings, runner: TaskRunner, fake_wine: FakeWine) -> Orchestrator:
    executor = ProcessExecutor()
    store = BottleStore(settings.bottles_root)
    store.load()
    runtime_manager = RuntimeManager(
        runtimes_root=settings.runtimes_root,
        executor=executor,
        installer=RuntimeInstaller(executor=executor),
        host=HostPlatform(),
    )
    runtime_manager.runtime = Runtime(
        runtime_id="test-runtime",
        name="Fake Wine",
        wine_path=str(fake_wine.path),
        version="wine-9.0",
        root_path=str(fake_wine.path.parent.parent),
        installed_at=utc_now(),
    )
    return Orchestrator(
        store=store,
        runtime_manager=runtime_manager,
        task_runner=runner,
        ledger=TaskLedger(max_lines=settings.tasks.max_log_lines),
        export_import=ExportImportService(executor),
    )


@pytest.fixture()
def make_executable() -> Callable[[Path, str], Path]:
    return write_executable
