"""Download, unpack, and register a Wine runtime archive."""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlparse
from uuid import uuid4

import httpx

from wine_bottles.bottles.models import Runtime
from wine_bottles.common import utc_now
from wine_bottles.errors import ExecutionError, RuntimeInstallError, UnsupportedOperationError
from wine_bottles.tasks.executor import ProcessExecutor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_MAX_RETRIES = 3
WINE_BINARY_NAMES = ("wine", "wine64")
_TAR_FLAGS = {
    ".tar.gz": "-xzf",
    ".tgz": "-xzf",
    ".tar.xz": "-xJf",
    ".tar": "-xf",
}


def archive_kind(name: str) -> str:
    """Return ``zip`` or the tar suffix of ``name``; raise for anything else."""

    lowered = name.lower()
    if lowered.endswith(".zip"):
        return "zip"
    for suffix in _TAR_FLAGS:
        if lowered.endswith(suffix):
            return suffix
    raise UnsupportedOperationError(f"Unsupported runtime archive type: {name}")


class RuntimeInstaller:
    """Turns a local or remote archive into an entry under ``runtimes_root``."""

    def __init__(
        self,
        *,
        executor: ProcessExecutor,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.executor = executor
        self._timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self._max_retries = max_retries
        self._transport = transport

    def install(
        self,
        *,
        source: str,
        runtimes_root: Path,
        version_probe: Callable[[str], str],
    ) -> Runtime:
        with tempfile.TemporaryDirectory(prefix="wine-runtime-") as temp_name:
            temp_dir = Path(temp_name)
            extract_dir = temp_dir / "extract"
            extract_dir.mkdir()

            archive_path = self._resolve_archive(source, temp_dir)
            self.extract(archive_path, extract_dir)
            root = find_runtime_root(extract_dir)
            wine_binary = find_wine_binary(root)

            runtime_id = str(uuid4())
            runtime_dir = runtimes_root / runtime_id
            relative_wine = wine_binary.relative_to(root)
            if runtime_dir.exists():
                shutil.rmtree(runtime_dir)
            shutil.move(str(root), str(runtime_dir))

        final_wine_path = str(runtime_dir / relative_wine)
        self._clear_quarantine(runtime_dir)
        version = version_probe(final_wine_path)
        logger.info("Runtime installed: runtime_id=%s wine=%s", runtime_id, final_wine_path)
        return Runtime(
            runtime_id=runtime_id,
            name="Downloaded Wine",
            wine_path=final_wine_path,
            version=version or "unknown",
            root_path=str(runtime_dir),
            source_url=source,
            installed_at=utc_now(),
        )

    def extract(self, archive_path: Path, destination: Path) -> None:
        kind = archive_kind(archive_path.name)
        if kind == "zip":
            path, args = "unzip", ["-q", str(archive_path), "-d", str(destination)]
        else:
            path, args = "tar", [_TAR_FLAGS[kind], str(archive_path), "-C", str(destination)]
        try:
            result = self.executor.run(path, args)
        except ExecutionError as error:
            raise RuntimeInstallError(str(error)) from error
        if not result.ok:
            raise RuntimeInstallError(result.stderr.strip() or f"{path} exited {result.exit_code}")

    def _resolve_archive(self, source: str, temp_dir: Path) -> Path:
        parsed = urlparse(source)
        if parsed.scheme in {"http", "https"}:
            filename = Path(parsed.path).name or "runtime.tar.gz"
            archive_kind(filename)
            return self._download(source, temp_dir / filename)
        local = Path(parsed.path if parsed.scheme == "file" else source).expanduser()
        if not local.is_file():
            raise RuntimeInstallError(f"Runtime archive not found: {local}")
        archive_kind(local.name)
        return local

    def _download(self, url: str, destination: Path) -> Path:
        logger.info("Downloading runtime from %s", url)
        transport = self._transport or httpx.HTTPTransport(retries=self._max_retries)
        try:
            with (
                httpx.Client(
                    timeout=self._timeout,
                    transport=transport,
                    follow_redirects=True,
                ) as client,
                client.stream("GET", url) as response,
            ):
                response.raise_for_status()
                with destination.open("wb") as handle:
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
        except httpx.HTTPError as error:
            raise RuntimeInstallError(f"Runtime download failed: {error}") from error
        return destination

    def _clear_quarantine(self, directory: Path) -> None:
        xattr = shutil.which("xattr")
        if xattr is None:
            return
        try:
            self.executor.run(xattr, ["-dr", "com.apple.quarantine", str(directory)])
        except ExecutionError:
            logger.debug("Could not clear quarantine flag on %s", directory)


def find_runtime_root(directory: Path) -> Path:
    """Unwrap a single top-level folder produced by the archive."""

    contents = list(directory.iterdir())
    if len(contents) == 1 and contents[0].is_dir():
        return contents[0]
    return directory


def find_wine_binary(directory: Path) -> Path:
    for candidate in sorted(directory.rglob("*")):
        if candidate.name.startswith("."):
            continue
        if (
            candidate.name.lower() in WINE_BINARY_NAMES
            and candidate.parent.name == "bin"
            and candidate.is_file()
        ):
            return candidate
    raise RuntimeInstallError("Wine binary not found in runtime")
