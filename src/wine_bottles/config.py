"""Runtime configuration for bottle storage, runtimes, and task logs."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HOME = Path("~/.wine-bottles")


@dataclass(slots=True)
class TaskSettings:
    """Task engine limits."""

    terminate_grace_seconds: float = 2.0
    drain_timeout_seconds: float = 5.0
    max_log_lines: int = 2_000


@dataclass(slots=True)
class RuntimeSettings:
    """Runtime detection and download settings."""

    wine_candidates: tuple[str, ...] = ("/opt/homebrew/bin/wine", "/usr/local/bin/wine")
    download_timeout_seconds: float = 300.0
    download_max_retries: int = 3
    use_arch_wrapper: bool = True


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns.

    Every component receives its root directories from here instead of
    resolving fixed application-support paths on its own.
    """

    bottles_root: Path = field(default_factory=lambda: DEFAULT_HOME.expanduser() / "Bottles")
    runtimes_root: Path = field(default_factory=lambda: DEFAULT_HOME.expanduser() / "Runtimes")
    logs_root: Path = field(default_factory=lambda: DEFAULT_HOME.expanduser() / "Logs")
    tasks: TaskSettings = field(default_factory=TaskSettings)
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)

    @classmethod
    def from_env(cls, home: Path | None = None) -> Settings:
        """Load settings from environment with defaults under ``~/.wine-bottles``."""

        base = home or Path(os.getenv("WINE_BOTTLES_HOME", str(DEFAULT_HOME))).expanduser()
        return cls(
            bottles_root=_env_path("WINE_BOTTLES_BOTTLES_ROOT", base / "Bottles"),
            runtimes_root=_env_path("WINE_BOTTLES_RUNTIMES_ROOT", base / "Runtimes"),
            logs_root=_env_path("WINE_BOTTLES_LOGS_ROOT", base / "Logs"),
            tasks=TaskSettings(
                terminate_grace_seconds=float(
                    os.getenv("WINE_BOTTLES_TERMINATE_GRACE_SECONDS", "2.0"),
                ),
                drain_timeout_seconds=float(
                    os.getenv("WINE_BOTTLES_DRAIN_TIMEOUT_SECONDS", "5.0"),
                ),
                max_log_lines=int(os.getenv("WINE_BOTTLES_MAX_LOG_LINES", "2000")),
            ),
            runtime=RuntimeSettings(
                download_timeout_seconds=float(
                    os.getenv("WINE_BOTTLES_DOWNLOAD_TIMEOUT_SECONDS", "300.0"),
                ),
                download_max_retries=int(os.getenv("WINE_BOTTLES_DOWNLOAD_MAX_RETRIES", "3")),
                use_arch_wrapper=_env_bool("WINE_BOTTLES_USE_ARCH_WRAPPER", default=True),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if limits are out of range."""

        if self.tasks.terminate_grace_seconds < 0:
            raise ValueError("WINE_BOTTLES_TERMINATE_GRACE_SECONDS must be >= 0.")
        if self.tasks.drain_timeout_seconds <= 0:
            raise ValueError("WINE_BOTTLES_DRAIN_TIMEOUT_SECONDS must be > 0.")
        if self.tasks.max_log_lines <= 0:
            raise ValueError("WINE_BOTTLES_MAX_LOG_LINES must be a positive integer.")
        if self.runtime.download_max_retries < 0:
            raise ValueError("WINE_BOTTLES_DOWNLOAD_MAX_RETRIES must be >= 0.")

    def ensure_directories(self) -> None:
        """Create bottle, runtime, and log roots."""

        for root in (self.bottles_root, self.runtimes_root, self.logs_root):
            root.mkdir(parents=True, exist_ok=True)


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    return Path(value).expanduser()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
