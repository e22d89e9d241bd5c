"""Controllers for CLI commands."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path

from wine_bottles.bottles.archive import ExportImportService
from wine_bottles.bottles.installer import RuntimeInstaller
from wine_bottles.bottles.models import Bottle, BottleArch, WindowsVersion
from wine_bottles.bottles.runtime import RuntimeManager
from wine_bottles.bottles.store import BottleStore
from wine_bottles.config import Settings
from wine_bottles.errors import WineBottlesError
from wine_bottles.orchestrator import EventObserver, Orchestrator
from wine_bottles.tasks.executor import ProcessExecutor
from wine_bottles.tasks.ledger import TaskLedger
from wine_bottles.tasks.models import TaskEvent, TaskFinished, TaskOutput, TaskStatus
from wine_bottles.tasks.runner import TaskRunner

logger = logging.getLogger(__name__)

_SENTINEL = object()

Workflow = Callable[[Orchestrator], object]


@dataclass(slots=True)
class RuntimeInstallCommand:
    """CLI input for runtime installation."""

    home: Path | None
    source: str


@dataclass(slots=True)
class BottleCreateCommand:
    """CLI input for bottle creation."""

    home: Path | None
    name: str
    win_version: WindowsVersion
    arch: BottleArch
    environment: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class BottleConfigureCommand:
    """CLI input for bottle environment, DLL override, and version changes."""

    home: Path | None
    bottle: str
    environment: dict[str, str] = field(default_factory=dict)
    dll_overrides: dict[str, str] = field(default_factory=dict)
    unset: tuple[str, ...] = ()
    win_version: WindowsVersion | None = None


@dataclass(slots=True)
class BottleCloneCommand:
    home: Path | None
    bottle: str
    new_name: str


@dataclass(slots=True)
class BottleArchiveCommand:
    """CLI input for bottle export (bottle + archive) or import (archive only)."""

    home: Path | None
    archive: Path
    bottle: str | None = None
    new_name: str | None = None


@dataclass(slots=True)
class BottleRunCommand:
    """CLI input for running something inside a bottle."""

    home: Path | None
    bottle: str
    target: str
    arguments: tuple[str, ...] = ()


@dataclass(slots=True)
class ExecCommand:
    """CLI input for an arbitrary command run as a tracked task."""

    home: Path | None
    path: str
    arguments: tuple[str, ...]
    title: str | None = None
    environment: dict[str, str] = field(default_factory=dict)
    cwd: Path | None = None


class WorkflowRun:
    """One CLI workflow executed on a worker thread with live output lines.

    The calling thread iterates :meth:`lines`; ``KeyboardInterrupt`` while
    waiting requests a stop of the task currently running.
    """

    def __init__(self, settings: Settings, workflow: Workflow) -> None:
        self.settings = settings
        self.workflow = workflow
        self.result: object = None
        self.alert_message: str | None = None
        self.statuses: list[TaskStatus] = []

    @property
    def success(self) -> bool:
        return self.alert_message is None and all(
            status is TaskStatus.SUCCESS for status in self.statuses
        )

    def lines(self) -> Iterator[str]:
        progress_q: queue.Queue[str | object] = queue.Queue()

        def _on_event(_task_id: str, event: TaskEvent) -> None:
            progress_q.put(format_event(event))

        error_holder: list[Exception] = []
        with session(self.settings, on_event=_on_event) as orchestrator:

            def _run() -> None:
                try:
                    self.result = self.workflow(orchestrator)
                except WineBottlesError as exc:
                    orchestrator.alert_message = str(exc)
                except Exception as exc:  # noqa: BLE001
                    error_holder.append(exc)
                finally:
                    progress_q.put(_SENTINEL)

            worker_thread = threading.Thread(target=_run, daemon=True, name="workflow")
            worker_thread.start()

            while True:
                try:
                    item = progress_q.get()
                except KeyboardInterrupt:
                    task_id = orchestrator.selected_task_id
                    if task_id and task_id in orchestrator.task_runner.running_task_ids():
                        yield f"Stopping task {task_id}..."
                        orchestrator.stop_task(task_id)
                    continue
                if item is _SENTINEL:
                    break
                yield str(item)

            worker_thread.join(timeout=10)

            entries = list(reversed(orchestrator.ledger.entries()))
            self.statuses = [entry.status for entry in entries]
            for entry in entries:
                exit_code = "-" if entry.exit_code is None else entry.exit_code
                yield f"[{entry.status.value}] {entry.title} (exit code {exit_code})"
                log_path = orchestrator.task_runner.log_path(entry.task_id)
                if log_path.exists():
                    yield f"  log: {log_path}"
                else:
                    yield from (f"  {line}" for line in entry.lines)

            if error_holder:
                logger.error("Workflow crashed", exc_info=error_holder[0])
                self.alert_message = f"Unexpected error: {error_holder[0]}"
            else:
                self.alert_message = orchestrator.alert_message


class BottleCliController:
    """Coordinates runtime, bottle, and task CLI operations."""

    def __init__(self, settings_factory: Callable[[Path | None], Settings] | None = None) -> None:
        self._settings_factory = settings_factory or (lambda home: Settings.from_env(home=home))

    def settings(self, home: Path | None) -> Settings:
        return self._settings_factory(home)

    def detect_runtime(self, home: Path | None) -> list[str]:
        with session(self.settings(home)) as orchestrator:
            runtime = orchestrator.runtime_manager.runtime
            if runtime is None:
                return [orchestrator.runtime_manager.status_message or "No runtime found."]
            return [
                f"Runtime: {runtime.name} {runtime.version}",
                f"  wine: {runtime.wine_path}",
                f"  id:   {runtime.runtime_id}",
            ]

    def install_runtime(self, command: RuntimeInstallCommand) -> WorkflowRun:
        return WorkflowRun(
            self.settings(command.home),
            lambda orchestrator: orchestrator.install_runtime(command.source),
        )

    def list_bottles(self, home: Path | None) -> list[str]:
        with session(self.settings(home)) as orchestrator:
            bottles = orchestrator.store.bottles
            if not bottles:
                return ["No bottles yet."]
            return [_format_bottle(bottle) for bottle in bottles]

    def create_bottle(self, command: BottleCreateCommand) -> WorkflowRun:
        return WorkflowRun(
            self.settings(command.home),
            lambda orchestrator: orchestrator.create_bottle(
                name=command.name,
                win_version=command.win_version,
                arch=command.arch,
                environment=command.environment,
            ),
        )

    def configure_bottle(self, command: BottleConfigureCommand) -> WorkflowRun:
        def _configure(orchestrator: Orchestrator) -> object:
            bottle = orchestrator.store.find(command.bottle)
            environment = {**bottle.environment, **command.environment}
            dll_overrides = {**bottle.dll_overrides, **command.dll_overrides}
            for key in command.unset:
                environment.pop(key, None)
                dll_overrides.pop(key, None)
            updated = orchestrator.update_bottle(
                replace(
                    bottle,
                    environment=environment,
                    dll_overrides=dll_overrides,
                    win_version=command.win_version or bottle.win_version,
                ),
            )
            if updated is not None and command.win_version is not None:
                orchestrator.apply_windows_version(updated)
            return updated

        return WorkflowRun(self.settings(command.home), _configure)

    def delete_bottle(self, home: Path | None, key: str) -> WorkflowRun:
        return WorkflowRun(
            self.settings(home),
            lambda orchestrator: orchestrator.delete_bottle(orchestrator.store.find(key).bottle_id),
        )

    def clone_bottle(self, command: BottleCloneCommand) -> WorkflowRun:
        return WorkflowRun(
            self.settings(command.home),
            lambda orchestrator: orchestrator.clone_bottle(
                orchestrator.store.find(command.bottle).bottle_id,
                command.new_name,
            ),
        )

    def export_bottle(self, command: BottleArchiveCommand) -> WorkflowRun:
        return WorkflowRun(
            self.settings(command.home),
            lambda orchestrator: orchestrator.export_bottle(
                orchestrator.store.find(command.bottle or ""),
                command.archive,
            ),
        )

    def import_bottle(self, command: BottleArchiveCommand) -> WorkflowRun:
        return WorkflowRun(
            self.settings(command.home),
            lambda orchestrator: orchestrator.import_bottle(command.archive, command.new_name),
        )

    def shortcuts(self, home: Path | None, key: str) -> list[str]:
        with session(self.settings(home)) as orchestrator:
            try:
                bottle = orchestrator.store.find(key)
            except WineBottlesError as error:
                return [str(error)]
            refreshed = orchestrator.refresh_shortcuts(bottle)
            if refreshed is None:
                return [orchestrator.alert_message or "Shortcut scan failed."]
            if not refreshed.shortcuts:
                return ["No executables found in Program Files."]
            return [f"{shortcut.name}: {shortcut.exe_path}" for shortcut in refreshed.shortcuts]

    def run_exe(self, command: BottleRunCommand) -> WorkflowRun:
        return self._in_bottle(
            command,
            lambda orchestrator, bottle: orchestrator.run_exe(
                bottle,
                Path(command.target),
                list(command.arguments),
            ),
        )

    def run_installer(self, command: BottleRunCommand) -> WorkflowRun:
        return self._in_bottle(
            command,
            lambda orchestrator, bottle: orchestrator.run_installer(bottle, Path(command.target)),
        )

    def run_winetricks(self, command: BottleRunCommand) -> WorkflowRun:
        return self._in_bottle(
            command,
            lambda orchestrator, bottle: orchestrator.run_winetricks(bottle, command.target),
        )

    def run_shortcut(self, command: BottleRunCommand) -> WorkflowRun:
        def _run(orchestrator: Orchestrator, bottle: Bottle) -> object:
            for shortcut in bottle.shortcuts:
                if command.target in (shortcut.shortcut_id, shortcut.name):
                    return orchestrator.run_shortcut(bottle, shortcut)
            raise WineBottlesError(f"Shortcut not found: {command.target}")

        return self._in_bottle(command, _run)

    def exec_command(self, command: ExecCommand) -> WorkflowRun:
        return WorkflowRun(
            self.settings(command.home),
            lambda orchestrator: orchestrator.run_command(
                title=command.title or Path(command.path).name,
                path=command.path,
                args=list(command.arguments),
                env=command.environment,
                cwd=command.cwd,
            ),
        )

    def _in_bottle(
        self,
        command: BottleRunCommand,
        action: Callable[[Orchestrator, Bottle], object],
    ) -> WorkflowRun:
        def _workflow(orchestrator: Orchestrator) -> object:
            return action(orchestrator, orchestrator.store.find(command.bottle))

        return WorkflowRun(self.settings(command.home), _workflow)


@contextmanager
def session(settings: Settings, on_event: EventObserver | None = None) -> Iterator[Orchestrator]:
    """Wire up one orchestrator over the configured roots."""

    settings.validate()
    settings.ensure_directories()
    executor = ProcessExecutor()
    store = BottleStore(settings.bottles_root)
    store.load()
    runtime_manager = RuntimeManager(
        runtimes_root=settings.runtimes_root,
        executor=executor,
        installer=RuntimeInstaller(
            executor=executor,
            timeout_seconds=settings.runtime.download_timeout_seconds,
            max_retries=settings.runtime.download_max_retries,
        ),
        wine_candidates=settings.runtime.wine_candidates,
        use_arch_wrapper=settings.runtime.use_arch_wrapper,
    )
    runtime_manager.detect_runtime()
    with TaskRunner(
        logs_root=settings.logs_root,
        terminate_grace_seconds=settings.tasks.terminate_grace_seconds,
        drain_timeout_seconds=settings.tasks.drain_timeout_seconds,
    ) as runner:
        yield Orchestrator(
            store=store,
            runtime_manager=runtime_manager,
            task_runner=runner,
            ledger=TaskLedger(max_lines=settings.tasks.max_log_lines),
            export_import=ExportImportService(executor),
            on_event=on_event,
        )


def format_event(event: TaskEvent) -> str:
    if isinstance(event, TaskOutput):
        return f"stderr| {event.text}" if event.is_error else event.text
    if isinstance(event, TaskFinished):
        return f"-- exited with code {event.exit_code}"
    return str(event)


def _format_bottle(bottle: Bottle) -> str:
    details = [bottle.win_version.display_name, bottle.arch.display_name]
    if bottle.dll_overrides:
        details.append(f"{len(bottle.dll_overrides)} DLL overrides")
    if bottle.shortcuts:
        details.append(f"{len(bottle.shortcuts)} shortcuts")
    return f"{bottle.name} [{bottle.bottle_id}] {', '.join(details)}"
