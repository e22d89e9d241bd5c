"""Task engine: one-shot probes, streamed tasks, and the session ledger."""

from wine_bottles.tasks.executor import ProcessExecutor, ProcessResult
from wine_bottles.tasks.ledger import TaskLedger
from wine_bottles.tasks.models import (
    OutputStream,
    TaskEvent,
    TaskFinished,
    TaskLog,
    TaskOutput,
    TaskStatus,
)
from wine_bottles.tasks.runner import TaskEventStream, TaskHandle, TaskRunner

__all__ = [
    "OutputStream",
    "ProcessExecutor",
    "ProcessResult",
    "TaskEvent",
    "TaskEventStream",
    "TaskFinished",
    "TaskHandle",
    "TaskLedger",
    "TaskLog",
    "TaskOutput",
    "TaskRunner",
    "TaskStatus",
]
