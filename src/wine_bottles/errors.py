"""Error taxonomy shared by the task engine and bottle workflows."""

from __future__ import annotations


class WineBottlesError(RuntimeError):
    """Base class for errors surfaced to the user as a single message."""


class SpawnError(WineBottlesError):
    """Executable is missing, not executable, or the OS refused to start it."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


class ExecutionError(SpawnError):
    """One-shot probe command could not be spawned."""


class LaunchError(SpawnError):
    """Streamed task could not be spawned; no task was registered."""


class RuntimeMissingError(WineBottlesError):
    """No compatibility runtime is configured."""


class UnsupportedOperationError(WineBottlesError):
    """Requested operation type is not supported (for example an installer extension)."""


class BottleNotFoundError(WineBottlesError):
    """Bottle id is not present in the store."""


class RuntimeInstallError(WineBottlesError):
    """Runtime archive could not be downloaded, extracted, or recognized."""


class ArchiveError(WineBottlesError):
    """Bottle export or import failed."""
