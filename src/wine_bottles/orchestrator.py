"""Application controller: sequences bottle workflows over streamed tasks."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

from wine_bottles.bottles.archive import ExportImportService
from wine_bottles.bottles.models import Bottle, BottleArch, Runtime, Shortcut, WindowsVersion
from wine_bottles.bottles.runtime import RuntimeManager
from wine_bottles.bottles.store import BottleStore
from wine_bottles.bottles.wine import WineService
from wine_bottles.errors import WineBottlesError
from wine_bottles.tasks.ledger import TaskLedger
from wine_bottles.tasks.models import TaskEvent, TaskFinished, TaskOutput, TaskStatus
from wine_bottles.tasks.runner import TaskHandle, TaskRunner

logger = logging.getLogger(__name__)

TaskStep = Callable[[], TaskHandle]
EventObserver = Callable[[str, TaskEvent], None]


class Orchestrator:
    """Runs multi-step workflows and mirrors task events into the ledger.

    Failures before a task exists (missing runtime, spawn errors, bad
    installer types, store I/O) are reported through :attr:`alert_message`
    and never create a ledger entry.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        store: BottleStore,
        runtime_manager: RuntimeManager,
        task_runner: TaskRunner,
        ledger: TaskLedger,
        export_import: ExportImportService,
        on_event: EventObserver | None = None,
    ) -> None:
        self.store = store
        self.runtime_manager = runtime_manager
        self.task_runner = task_runner
        self.ledger = ledger
        self.export_import = export_import
        self.wine = WineService(
            runtime_manager=runtime_manager,
            task_runner=task_runner,
            store=store,
        )
        self.on_event = on_event
        self.selected_task_id: str | None = None
        self.alert_message: str | None = None

    # -- task consumption --------------------------------------------------------

    def consume(self, handle: TaskHandle) -> int:
        """Follow ``handle`` to its terminal event and return the exit code."""

        self.ledger.start(handle.task_id, handle.title)
        self.selected_task_id = handle.task_id
        exit_code = 0
        for event in handle.events:
            if isinstance(event, TaskOutput):
                self.ledger.append_line(handle.task_id, event.text)
            elif isinstance(event, TaskFinished):
                exit_code = event.exit_code
                log = self.ledger.finish(handle.task_id, exit_code)
                logger.info(
                    "Task %r ended: status=%s exit_code=%s",
                    handle.title,
                    log.status.value if log else "unknown",
                    exit_code,
                )
            if self.on_event is not None:
                self.on_event(handle.task_id, event)
        return exit_code

    def run_steps(self, steps: Iterable[TaskStep]) -> int:
        """Launch and consume ``steps`` in order, stopping after a non-zero exit."""

        exit_code = 0
        for step in steps:
            exit_code = self.consume(step())
            if exit_code != 0:
                break
        return exit_code

    def stop_task(self, task_id: str) -> None:
        """Request cancellation; the later terminal event is recorded as cancelled.

        Ids without a running ledger entry are ignored.
        """

        if not self.ledger.mark_cancelled(task_id):
            logger.debug("Stop ignored for task %s: not running", task_id)
            return
        self.task_runner.terminate(task_id)

    # -- runtime ---------------------------------------------------------------

    def refresh_runtime(self) -> Runtime | None:
        return self.runtime_manager.detect_runtime()

    def install_runtime(self, source: str) -> Runtime | None:
        self.alert_message = None
        log_id = str(uuid4())
        self.ledger.start(log_id, "Install Runtime")
        self.selected_task_id = log_id
        if self.runtime_manager.runtime is not None:
            self.ledger.append_line(log_id, "Runtime already installed.")
            self.ledger.finish(log_id, 0, TaskStatus.SUCCESS)
            return self.runtime_manager.runtime
        self.ledger.append_line(log_id, "Installing runtime...")
        try:
            runtime = self.runtime_manager.install_runtime(source)
        except (WineBottlesError, OSError) as error:
            self.ledger.append_line(log_id, f"Error: {error}")
            self.ledger.finish(log_id, 1, TaskStatus.FAILED)
            self._alert(error)
            return None
        self.ledger.append_line(log_id, f"Installed: {runtime.name} {runtime.version}")
        self.ledger.finish(log_id, 0, TaskStatus.SUCCESS)
        return runtime

    # -- bottle workflows ------------------------------------------------------

    def create_bottle(
        self,
        *,
        name: str,
        win_version: WindowsVersion,
        arch: BottleArch,
        environment: dict[str, str] | None = None,
    ) -> Bottle | None:
        """Create the record, then initialize the prefix and set its Windows version."""

        with self._reporting():
            runtime = self.runtime_manager.require_runtime()
            bottle = self.store.create_bottle(
                name=name,
                win_version=win_version,
                arch=arch,
                runtime_id=runtime.runtime_id,
                environment=environment,
            )
            self.run_steps(
                [
                    lambda: self.wine.create_prefix(bottle),
                    lambda: self.wine.set_windows_version(bottle),
                ],
            )
            return bottle
        return None

    def apply_windows_version(self, bottle: Bottle) -> int | None:
        with self._reporting():
            return self.consume(self.wine.set_windows_version(bottle))
        return None

    def run_installer(self, bottle: Bottle, installer: Path) -> int | None:
        with self._reporting():
            return self.consume(self.wine.run_installer(bottle, installer))
        return None

    def run_exe(self, bottle: Bottle, exe: Path, arguments: list[str] | None = None) -> int | None:
        with self._reporting():
            return self.consume(self.wine.run_exe(bottle, exe, arguments))
        return None

    def run_winetricks(self, bottle: Bottle, verb: str) -> int | None:
        with self._reporting():
            return self.consume(self.wine.run_winetricks(bottle, verb))
        return None

    def run_shortcut(self, bottle: Bottle, shortcut: Shortcut) -> int | None:
        arguments = [shortcut.arguments] if shortcut.arguments else []
        return self.run_exe(bottle, Path(shortcut.exe_path), arguments)

    def run_command(
        self,
        *,
        title: str,
        path: str,
        args: list[str],
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> int | None:
        """Run an arbitrary executable as a tracked task."""

        with self._reporting():
            return self.consume(
                self.task_runner.run(title=title, path=path, args=args, env=env, cwd=cwd),
            )
        return None

    def refresh_shortcuts(self, bottle: Bottle) -> Bottle | None:
        with self._reporting():
            return self.store.update_bottle(
                replace(bottle, shortcuts=self.wine.scan_shortcuts(bottle)),
            )
        return None

    def update_bottle(self, bottle: Bottle) -> Bottle | None:
        with self._reporting():
            return self.store.update_bottle(bottle)
        return None

    def delete_bottle(self, bottle_id: str) -> None:
        with self._reporting():
            self.store.delete_bottle(bottle_id)

    def clone_bottle(self, bottle_id: str, new_name: str) -> Bottle | None:
        with self._reporting():
            return self.store.clone_bottle(bottle_id, new_name)
        return None

    def export_bottle(self, bottle: Bottle, destination: Path) -> bool:
        with self._reporting():
            self.export_import.export_bottle(bottle, destination, store=self.store)
            return True
        return False

    def import_bottle(self, archive: Path, new_name: str | None = None) -> Bottle | None:
        with self._reporting():
            return self.export_import.import_bottle(archive, store=self.store, new_name=new_name)
        return None

    # -- helpers ---------------------------------------------------------------

    @contextmanager
    def _reporting(self) -> Iterator[None]:
        self.alert_message = None
        try:
            yield
        except (WineBottlesError, OSError, ValueError, TypeError) as error:
            self._alert(error)

    def _alert(self, error: Exception) -> None:
        self.alert_message = str(error) or type(error).__name__
        logger.error("Workflow failed: %s", self.alert_message)
