"""Wine runtime detection, index persistence, and command wrapping."""

from __future__ import annotations

import logging
import platform
import sys
from dataclasses import dataclass
from pathlib import Path

from wine_bottles.bottles.installer import RuntimeInstaller
from wine_bottles.bottles.models import Runtime
from wine_bottles.common import load_json, utc_now, write_json
from wine_bottles.errors import ExecutionError, RuntimeMissingError
from wine_bottles.tasks.executor import ProcessExecutor

logger = logging.getLogger(__name__)

INDEX_FILE = "runtimes.json"
ARCH_WRAPPER = "/usr/bin/arch"
SYSTEM_RUNTIME_ID = "system-wine"


@dataclass(frozen=True, slots=True)
class HostPlatform:
    """CPU facts that decide whether commands need an ``arch`` wrapper."""

    is_apple_silicon: bool = False
    is_translated: bool = False

    @classmethod
    def detect(cls, executor: ProcessExecutor) -> HostPlatform:
        if sys.platform != "darwin":
            return cls()
        machine = platform.machine().lower()
        translated = False
        try:
            result = executor.run("/usr/sbin/sysctl", ["-in", "sysctl.proc_translated"])
            translated = result.ok and result.stdout.strip() == "1"
        except ExecutionError:
            logger.debug("sysctl unavailable; assuming native process")
        return cls(is_apple_silicon=machine == "arm64" or translated, is_translated=translated)


def command_for_executable(
    path: str,
    args: list[str] | tuple[str, ...] = (),
    *,
    host: HostPlatform,
) -> tuple[str, list[str]]:
    """Wrap ``path`` in ``arch -<arch>`` when the binary lives in a foreign prefix."""

    arch = _preferred_arch(path, host)
    if arch is not None:
        return ARCH_WRAPPER, [f"-{arch}", path, *args]
    return path, list(args)


def _preferred_arch(path: str, host: HostPlatform) -> str | None:
    if not host.is_apple_silicon:
        return None
    if path.startswith("/opt/homebrew"):
        return "arm64" if host.is_translated else None
    if path.startswith("/usr/local"):
        return "x86_64"
    return None


class RuntimeManager:
    """Tracks the active runtime and the installed-runtimes index."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        runtimes_root: Path,
        executor: ProcessExecutor,
        installer: RuntimeInstaller,
        host: HostPlatform | None = None,
        wine_candidates: tuple[str, ...] = (),
        use_arch_wrapper: bool = True,
    ) -> None:
        self.runtimes_root = runtimes_root
        self.executor = executor
        self.installer = installer
        self.host = host if host is not None else HostPlatform.detect(executor)
        self.wine_candidates = wine_candidates
        self.use_arch_wrapper = use_arch_wrapper
        self.runtime: Runtime | None = None
        self.runtimes: list[Runtime] = []
        self.status_message: str | None = None

    @property
    def index_path(self) -> Path:
        return self.runtimes_root / INDEX_FILE

    def load_runtimes(self) -> list[Runtime]:
        if not self.index_path.exists():
            self.runtimes = []
            return []
        raw = load_json(self.index_path)
        if not isinstance(raw, list):
            raise TypeError(f"Expected JSON array in {self.index_path}")
        self.runtimes = [Runtime.from_dict(item) for item in raw]
        return list(self.runtimes)

    def save_runtimes(self) -> None:
        write_json(self.index_path, [runtime.to_dict() for runtime in self.runtimes])

    def detect_runtime(self) -> Runtime | None:
        """Pick the first installed runtime, else probe a system-wide wine."""

        try:
            self.load_runtimes()
            if self.runtimes:
                self.runtime = self.runtimes[0]
                self.status_message = None
                return self.runtime

            wine_path = self.find_wine_path()
            if wine_path is not None:
                path, args = self.command_for_executable(wine_path, ["--version"])
                result = self.executor.run(path, args)
                if result.ok:
                    version = result.stdout.strip()
                    self.runtime = Runtime(
                        runtime_id=SYSTEM_RUNTIME_ID,
                        name="System Wine",
                        wine_path=wine_path,
                        version=version or "unknown",
                        root_path="",
                        installed_at=utc_now(),
                    )
                    self.status_message = None
                    logger.info("Detected wine at %s (%s)", wine_path, self.runtime.version)
                    return self.runtime
            self.runtime = None
            self.status_message = "No runtime installed. Install a Wine runtime."
        except (ExecutionError, OSError, TypeError, ValueError) as error:
            self.runtime = None
            self.status_message = f"Wine detection failed: {error}"
            logger.warning(self.status_message)
        return None

    def require_runtime(self) -> Runtime:
        if self.runtime is not None:
            return self.runtime
        raise RuntimeMissingError(self.status_message or "Wine runtime missing")

    def install_runtime(self, source: str) -> Runtime:
        self.runtimes_root.mkdir(parents=True, exist_ok=True)
        installed = self.installer.install(
            source=source,
            runtimes_root=self.runtimes_root,
            version_probe=self._probe_version,
        )
        self.runtimes = [installed]
        self.runtime = installed
        self.status_message = None
        self.save_runtimes()
        return installed

    def find_wine_path(self) -> str | None:
        for candidate in self.wine_candidates:
            if Path(candidate).is_file():
                return candidate
        try:
            which = self.executor.run("/usr/bin/which", ["wine"])
        except ExecutionError:
            return None
        if which.ok:
            return _normalize_path(which.stdout)
        return None

    def command_for_executable(
        self,
        path: str,
        args: list[str] | tuple[str, ...] = (),
    ) -> tuple[str, list[str]]:
        if not self.use_arch_wrapper:
            return path, list(args)
        return command_for_executable(path, args, host=self.host)

    def _probe_version(self, wine_path: str) -> str:
        path, args = self.command_for_executable(wine_path, ["--version"])
        result = self.executor.run(path, args)
        return result.stdout.strip() if result.ok else ""


def _normalize_path(value: str) -> str | None:
    trimmed = value.strip()
    if not trimmed.startswith("/"):
        return None
    if not Path(trimmed).exists():
        return None
    return trimmed
