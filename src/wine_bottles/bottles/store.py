"""JSON-backed bottle index with per-bottle metadata files."""

from __future__ import annotations

import logging
import shutil
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

from wine_bottles.bottles.models import Bottle, BottleArch, WindowsVersion
from wine_bottles.common import load_json, utc_now, write_json
from wine_bottles.errors import BottleNotFoundError

logger = logging.getLogger(__name__)

INDEX_FILE = "bottles.json"
METADATA_FILE = "metadata.json"


class BottleStore:
    """Keeps ``bottles.json`` and each bottle's ``metadata.json`` in sync."""

    def __init__(self, bottles_root: Path) -> None:
        self.bottles_root = bottles_root
        self.bottles: list[Bottle] = []

    @property
    def index_path(self) -> Path:
        return self.bottles_root / INDEX_FILE

    def prefix_path(self, bottle: Bottle | str) -> Path:
        bottle_id = bottle if isinstance(bottle, str) else bottle.bottle_id
        return self.bottles_root / bottle_id

    def load(self) -> list[Bottle]:
        """Read the index, rebuilding it from bottle folders when it is missing."""

        self.bottles_root.mkdir(parents=True, exist_ok=True)
        if self.index_path.exists():
            raw = load_json(self.index_path)
            if not isinstance(raw, list):
                raise TypeError(f"Expected JSON array in {self.index_path}")
            self.bottles = [Bottle.from_dict(item) for item in raw]
            return list(self.bottles)

        loaded: list[Bottle] = []
        for folder in sorted(self.bottles_root.iterdir()):
            metadata_path = folder / METADATA_FILE
            if not folder.is_dir() or not metadata_path.exists():
                continue
            loaded.append(Bottle.from_dict(load_json(metadata_path)))
        self.bottles = sorted(loaded, key=lambda bottle: bottle.name.casefold())
        if self.bottles:
            logger.info("Rebuilt bottle index from %d metadata files", len(self.bottles))
        self.save()
        return list(self.bottles)

    def save(self) -> None:
        write_json(self.index_path, [bottle.to_dict() for bottle in self.bottles])
        for bottle in self.bottles:
            write_json(self.prefix_path(bottle) / METADATA_FILE, bottle.to_dict())

    def get(self, bottle_id: str) -> Bottle:
        for bottle in self.bottles:
            if bottle.bottle_id == bottle_id:
                return bottle
        raise BottleNotFoundError(f"Bottle not found: {bottle_id}")

    def find(self, key: str) -> Bottle:
        """Resolve a bottle by id or by case-insensitive name."""

        for bottle in self.bottles:
            if bottle.bottle_id == key or bottle.name.casefold() == key.casefold():
                return bottle
        raise BottleNotFoundError(f"Bottle not found: {key}")

    def create_bottle(  # noqa: PLR0913
        self,
        *,
        name: str,
        win_version: WindowsVersion,
        arch: BottleArch,
        runtime_id: str,
        environment: dict[str, str] | None = None,
    ) -> Bottle:
        now = utc_now()
        bottle = Bottle(
            bottle_id=str(uuid4()),
            name=name,
            win_version=win_version,
            arch=arch,
            runtime_id=runtime_id,
            created_at=now,
            updated_at=now,
            environment=dict(environment or {}),
        )
        self.prefix_path(bottle).mkdir(parents=True, exist_ok=True)
        self.bottles.append(bottle)
        self.save()
        logger.info("Bottle created: name=%r bottle_id=%s", name, bottle.bottle_id)
        return bottle

    def update_bottle(self, bottle: Bottle) -> Bottle | None:
        for index, existing in enumerate(self.bottles):
            if existing.bottle_id == bottle.bottle_id:
                updated = replace(bottle, updated_at=utc_now())
                self.bottles[index] = updated
                self.save()
                return updated
        return None

    def delete_bottle(self, bottle_id: str) -> None:
        for index, existing in enumerate(self.bottles):
            if existing.bottle_id == bottle_id:
                del self.bottles[index]
                self.save()
                folder = self.prefix_path(existing)
                if folder.exists():
                    shutil.rmtree(folder)
                logger.info("Bottle deleted: bottle_id=%s", bottle_id)
                return

    def clone_bottle(self, bottle_id: str, new_name: str) -> Bottle:
        source = self.get(bottle_id)
        now = utc_now()
        clone = replace(
            source,
            bottle_id=str(uuid4()),
            name=new_name,
            created_at=now,
            updated_at=now,
            environment=dict(source.environment),
            dll_overrides=dict(source.dll_overrides),
            shortcuts=list(source.shortcuts),
        )
        shutil.copytree(self.prefix_path(source), self.prefix_path(clone), symlinks=True)
        self.bottles.append(clone)
        self.save()
        return clone

    def add_bottle(self, bottle: Bottle) -> None:
        self.bottles.append(bottle)
        self.save()
