"""Cancellable long-running tasks with live line streaming and on-disk logs.

Threads per task:

- one reader per pipe, posting raw chunks to the runner inbox;
- one waiter that blocks on process exit, joins the readers, then posts the
  exit message.

A single owner thread per runner consumes the inbox and is the only place
where per-task state changes: log file writes, line splitting, event
emission, and removal from the running-task table. Because the waiter posts
the exit message only after the readers finished posting, every chunk is
applied before ``TaskFinished`` is emitted.
"""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO
from uuid import uuid4

from wine_bottles.common import utc_now
from wine_bottles.errors import LaunchError
from wine_bottles.tasks.executor import merged_environment
from wine_bottles.tasks.lines import LineBuffer
from wine_bottles.tasks.models import OutputStream, TaskEvent, TaskFinished, TaskOutput

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_END_OF_STREAM = object()
_STOP_OWNER = object()


class TaskEventStream:
    """Finite, non-restartable iterator over one task's events.

    Yields :class:`TaskOutput` items followed by exactly one
    :class:`TaskFinished`, then stops.
    """

    def __init__(self, events: queue.Queue[object]) -> None:
        self._events = events
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[TaskEvent]:
        return self

    def __next__(self) -> TaskEvent:
        if self._closed:
            raise StopIteration
        item = self._events.get()
        if item is _END_OF_STREAM:
            self._closed = True
            raise StopIteration
        return item  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class TaskHandle:
    """Launched task identity plus its event stream."""

    task_id: str
    title: str
    events: TaskEventStream


@dataclass(slots=True)
class _RunningTask:
    task_id: str
    title: str
    process: subprocess.Popen[bytes]
    log_path: Path
    log_handle: IO[bytes]
    events: queue.Queue[object]
    buffers: dict[OutputStream, LineBuffer] = field(
        default_factory=lambda: {stream: LineBuffer() for stream in OutputStream},
    )
    readers: list[threading.Thread] = field(default_factory=list)
    log_failed: bool = False


@dataclass(frozen=True, slots=True)
class _Chunk:
    task_id: str
    stream: OutputStream
    data: bytes


@dataclass(frozen=True, slots=True)
class _Exited:
    task_id: str
    exit_code: int


class TaskRunner:
    """Owns the registry of running tasks and their output plumbing."""

    def __init__(
        self,
        *,
        logs_root: Path,
        terminate_grace_seconds: float = 2.0,
        drain_timeout_seconds: float = 5.0,
    ) -> None:
        self.logs_root = logs_root
        self.terminate_grace_seconds = terminate_grace_seconds
        self.drain_timeout_seconds = drain_timeout_seconds
        self._running: dict[str, _RunningTask] = {}
        self._lock = threading.Lock()
        self._inbox: queue.Queue[object] = queue.Queue()
        self._owner = threading.Thread(
            target=self._owner_loop,
            daemon=True,
            name="task-runner-owner",
        )
        self._owner.start()

    def __enter__(self) -> TaskRunner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def log_path(self, task_id: str) -> Path:
        return self.logs_root / f"{task_id}.log"

    def running_task_ids(self) -> set[str]:
        with self._lock:
            return set(self._running)

    def run(  # noqa: PLR0913
        self,
        title: str,
        path: str,
        args: list[str] | tuple[str, ...] = (),
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> TaskHandle:
        """Spawn ``path`` with ``args`` and start streaming its output.

        Raises :class:`LaunchError` when the process cannot be spawned; in
        that case nothing is registered and no log file is left behind.
        """

        task_id = str(uuid4())
        log_path = self.log_path(task_id)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_handle = log_path.open("wb")
        try:
            process = subprocess.Popen(  # noqa: S603
                [path, *args],
                env=merged_environment(env),
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as error:
            log_handle.close()
            log_path.unlink(missing_ok=True)
            raise LaunchError(f"Failed to launch {title}: {error}", path=path) from error

        task = _RunningTask(
            task_id=task_id,
            title=title,
            process=process,
            log_path=log_path,
            log_handle=log_handle,
            events=queue.Queue(),
        )
        with self._lock:
            self._running[task_id] = task

        pipes = ((OutputStream.STDOUT, process.stdout), (OutputStream.STDERR, process.stderr))
        for stream, pipe in pipes:
            reader = threading.Thread(
                target=self._read_pipe,
                args=(task_id, stream, pipe),
                daemon=True,
                name=f"task-{task_id[:8]}-{stream.value}",
            )
            task.readers.append(reader)
            reader.start()
        threading.Thread(
            target=self._wait_for_exit,
            args=(task,),
            daemon=True,
            name=f"task-{task_id[:8]}-waiter",
        ).start()

        logger.info("Task started: title=%r task_id=%s pid=%s", title, task_id, process.pid)
        return TaskHandle(task_id=task_id, title=title, events=TaskEventStream(task.events))

    def terminate(self, task_id: str) -> None:
        """Stop a running task: SIGTERM, grace period, then SIGKILL.

        Unknown or already finished ids are ignored. The terminal event is
        still emitted by the normal exit path, never by this call.
        """

        with self._lock:
            task = self._running.get(task_id)
        if task is None:
            return
        logger.info("Terminating task %s (pid=%s)", task_id, task.process.pid)
        _terminate_process(task.process, grace_seconds=self.terminate_grace_seconds)

    def close(self) -> None:
        """Stop the owner thread once all queued messages are applied."""

        if not self._owner.is_alive():
            return
        self._inbox.put(_STOP_OWNER)
        self._owner.join(timeout=self.drain_timeout_seconds)

    # -- background threads ----------------------------------------------------

    def _read_pipe(self, task_id: str, stream: OutputStream, pipe: IO[bytes]) -> None:
        try:
            while True:
                chunk = pipe.read1(_CHUNK_SIZE)  # type: ignore[attr-defined]
                if not chunk:
                    break
                self._inbox.put(_Chunk(task_id=task_id, stream=stream, data=chunk))
        except (OSError, ValueError) as error:
            logger.warning("Reading %s of task %s failed: %s", stream.value, task_id, error)
        finally:
            try:
                pipe.close()
            except OSError:
                logger.debug("Closing %s pipe of task %s failed", stream.value, task_id)

    def _wait_for_exit(self, task: _RunningTask) -> None:
        exit_code = -1
        try:
            exit_code = task.process.wait()
            deadline = time.monotonic() + self.drain_timeout_seconds
            for reader in task.readers:
                reader.join(timeout=max(0.0, deadline - time.monotonic()))
                if reader.is_alive():
                    logger.warning(
                        "Task %s exited but %s is still open; finishing without it",
                        task.task_id,
                        reader.name,
                    )
        finally:
            self._inbox.put(_Exited(task_id=task.task_id, exit_code=exit_code))

    def _owner_loop(self) -> None:
        while True:
            message = self._inbox.get()
            if message is _STOP_OWNER:
                return
            try:
                if isinstance(message, _Chunk):
                    self._apply_chunk(message)
                elif isinstance(message, _Exited):
                    self._apply_exit(message)
            except Exception:
                logger.exception("Task runner failed to apply %s", type(message).__name__)

    # -- owner-only state mutation ----------------------------------------------

    def _lookup(self, task_id: str) -> _RunningTask | None:
        with self._lock:
            return self._running.get(task_id)

    def _apply_chunk(self, message: _Chunk) -> None:
        task = self._lookup(message.task_id)
        if task is None:
            return
        if not task.log_failed:
            try:
                task.log_handle.write(message.data)
                task.log_handle.flush()
            except OSError as error:
                task.log_failed = True
                logger.warning("Writing log %s failed: %s", task.log_path, error)
        for line in task.buffers[message.stream].feed(message.data):
            task.events.put(TaskOutput(stream=message.stream, text=line, timestamp=utc_now()))

    def _apply_exit(self, message: _Exited) -> None:
        task = self._lookup(message.task_id)
        if task is None:
            return
        try:
            for stream in OutputStream:
                remainder = task.buffers[stream].flush()
                if remainder is not None:
                    task.events.put(
                        TaskOutput(stream=stream, text=remainder, timestamp=utc_now()),
                    )
        finally:
            try:
                task.log_handle.close()
            except OSError as error:
                logger.warning("Closing log %s failed: %s", task.log_path, error)
            with self._lock:
                self._running.pop(task.task_id, None)
            task.events.put(TaskFinished(exit_code=message.exit_code))
            task.events.put(_END_OF_STREAM)
            logger.info(
                "Task finished: title=%r task_id=%s exit_code=%s",
                task.title,
                task.task_id,
                message.exit_code,
            )


def _terminate_process(process: subprocess.Popen[bytes], *, grace_seconds: float) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        logger.warning("Process %s ignored SIGTERM for %.1fs; killing", process.pid, grace_seconds)
        try:
            process.kill()
        except OSError:
            return
