"""Session-scoped store of task logs for display."""

from __future__ import annotations

import threading
from collections import deque

from wine_bottles.common import utc_now
from wine_bottles.tasks.models import DEFAULT_MAX_LOG_LINES, TaskLog, TaskStatus


class TaskLedger:
    """Ordered record of every task run in the session, newest first.

    Entries are never removed. Each entry keeps at most ``max_lines`` output
    lines; older lines are evicted first. All mutations happen under one
    lock and readers get copies, so observers on other threads never see a
    half-applied update.
    """

    def __init__(self, *, max_lines: int = DEFAULT_MAX_LOG_LINES) -> None:
        if max_lines <= 0:
            raise ValueError("max_lines must be positive")
        self.max_lines = max_lines
        self._entries: list[TaskLog] = []
        self._index: dict[str, TaskLog] = {}
        self._cancelled: set[str] = set()
        self._lock = threading.Lock()

    def start(self, task_id: str, title: str) -> TaskLog:
        log = TaskLog(
            task_id=task_id,
            title=title,
            status=TaskStatus.RUNNING,
            started_at=utc_now(),
            lines=deque(maxlen=self.max_lines),
        )
        with self._lock:
            if task_id in self._index:
                raise ValueError(f"Task log already exists: {task_id}")
            self._entries.insert(0, log)
            self._index[task_id] = log
            return log.copy()

    def append_line(self, task_id: str, line: str) -> None:
        with self._lock:
            log = self._index.get(task_id)
            if log is not None:
                log.lines.append(line)

    def mark_cancelled(self, task_id: str) -> bool:
        """Remember that a stop was requested before the task's terminal event.

        Only running entries can be marked; returns whether the mark was taken.
        """

        with self._lock:
            log = self._index.get(task_id)
            if log is None or log.status is not TaskStatus.RUNNING:
                return False
            self._cancelled.add(task_id)
            return True

    def finish(
        self,
        task_id: str,
        exit_code: int,
        status: TaskStatus | None = None,
    ) -> TaskLog | None:
        """Close an entry; without explicit ``status`` it is derived from the exit code.

        A pending cancellation wins over the exit code and is consumed here.
        """

        with self._lock:
            log = self._index.get(task_id)
            cancelled = task_id in self._cancelled
            self._cancelled.discard(task_id)
            if log is None:
                return None
            if status is None:
                if cancelled:
                    status = TaskStatus.CANCELLED
                else:
                    status = TaskStatus.SUCCESS if exit_code == 0 else TaskStatus.FAILED
            log.status = status
            log.exit_code = exit_code
            log.ended_at = utc_now()
            return log.copy()

    def get(self, task_id: str) -> TaskLog | None:
        with self._lock:
            log = self._index.get(task_id)
            return log.copy() if log is not None else None

    def entries(self) -> list[TaskLog]:
        with self._lock:
            return [log.copy() for log in self._entries]

    def running_ids(self) -> set[str]:
        with self._lock:
            return {log.task_id for log in self._entries if log.status is TaskStatus.RUNNING}

    def pending_cancellations(self) -> set[str]:
        with self._lock:
            return set(self._cancelled)
