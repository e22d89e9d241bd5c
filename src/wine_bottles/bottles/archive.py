"""Bottle export to and import from compressed archives."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

from wine_bottles.bottles.models import Bottle
from wine_bottles.bottles.store import METADATA_FILE, BottleStore
from wine_bottles.common import load_json, utc_now
from wine_bottles.errors import ArchiveError, ExecutionError
from wine_bottles.tasks.executor import ProcessExecutor

logger = logging.getLogger(__name__)


class ExportImportService:
    """Packs a bottle folder with ``tar`` and restores it under a fresh id."""

    def __init__(self, executor: ProcessExecutor) -> None:
        self.executor = executor

    def export_bottle(self, bottle: Bottle, destination: Path, *, store: BottleStore) -> None:
        folder = store.prefix_path(bottle)
        self._tar(["-czf", str(destination), "-C", str(folder.parent), folder.name])
        logger.info("Bottle exported: bottle_id=%s archive=%s", bottle.bottle_id, destination)

    def import_bottle(
        self,
        archive: Path,
        *,
        store: BottleStore,
        new_name: str | None = None,
    ) -> Bottle:
        with tempfile.TemporaryDirectory(prefix="wine-bottle-import-") as temp_name:
            temp_dir = Path(temp_name)
            self._tar(["-xzf", str(archive), "-C", str(temp_dir)])
            folder = next((item for item in sorted(temp_dir.iterdir()) if item.is_dir()), None)
            if folder is None:
                raise ArchiveError("Archive did not contain a bottle folder")
            metadata_path = folder / METADATA_FILE
            if not metadata_path.exists():
                raise ArchiveError(f"Archive is missing {METADATA_FILE}")

            imported = Bottle.from_dict(load_json(metadata_path))
            now = utc_now()
            bottle = replace(
                imported,
                bottle_id=str(uuid4()),
                name=new_name or imported.name,
                created_at=now,
                updated_at=now,
            )
            destination = store.prefix_path(bottle)
            if destination.exists():
                shutil.rmtree(destination)
            shutil.copytree(folder, destination, symlinks=True)

        store.add_bottle(bottle)
        logger.info("Bottle imported: name=%r bottle_id=%s", bottle.name, bottle.bottle_id)
        return bottle

    def _tar(self, args: list[str]) -> None:
        try:
            result = self.executor.run("tar", args)
        except ExecutionError as error:
            raise ArchiveError(str(error)) from error
        if not result.ok:
            raise ArchiveError(result.stderr.strip() or f"tar exited {result.exit_code}")
