"""Domain models for streamed tasks and their session log."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

DEFAULT_MAX_LOG_LINES = 2_000


class TaskStatus(str, Enum):
    """Display lifecycle states of a task."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OutputStream(str, Enum):
    """Pipe a line of output came from."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True, slots=True)
class TaskOutput:
    """One line of process output, newline stripped."""

    stream: OutputStream
    text: str
    timestamp: datetime

    @property
    def is_error(self) -> bool:
        return self.stream is OutputStream.STDERR


@dataclass(frozen=True, slots=True)
class TaskFinished:
    """Terminal event carrying the process exit code."""

    exit_code: int


TaskEvent = TaskOutput | TaskFinished


@dataclass(slots=True)
class TaskLog:
    """Session-scoped display record of one task."""

    task_id: str
    title: str
    status: TaskStatus
    started_at: datetime
    ended_at: datetime | None = None
    lines: deque[str] = field(default_factory=lambda: deque(maxlen=DEFAULT_MAX_LOG_LINES))
    exit_code: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not TaskStatus.RUNNING

    def copy(self) -> TaskLog:
        return TaskLog(
            task_id=self.task_id,
            title=self.title,
            status=self.status,
            started_at=self.started_at,
            ended_at=self.ended_at,
            lines=deque(self.lines, maxlen=self.lines.maxlen),
            exit_code=self.exit_code,
        )
