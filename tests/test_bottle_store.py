from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest

from wine_bottles.bottles.models import Bottle, BottleArch, Shortcut, WindowsVersion
from wine_bottles.bottles.store import BottleStore
from wine_bottles.errors import BottleNotFoundError

pytestmark = [
    allure.epic("Bottle Workflows"),
    allure.feature("Bottle Store"),
]


def _create(store: BottleStore, name: str) -> Bottle:
    return store.create_bottle(
        name=name,
        win_version=WindowsVersion.WIN11,
        arch=BottleArch.WIN64,
        runtime_id="rt-1",
        environment={"DXVK_HUD": "1"},
    )


def test_create_writes_index_and_metadata(tmp_path: Path) -> None:
    store = BottleStore(tmp_path / "Bottles")
    store.load()

    bottle = _create(store, "Steam")

    index = json.loads(store.index_path.read_text("utf-8"))
    metadata = json.loads((store.prefix_path(bottle) / "metadata.json").read_text("utf-8"))
    assert index == [metadata]
    assert metadata["id"] == bottle.bottle_id
    assert metadata["winVersion"] == "win11"
    assert metadata["runtimeID"] == "rt-1"
    assert metadata["environment"] == {"DXVK_HUD": "1"}


def test_load_reads_existing_index(tmp_path: Path) -> None:
    store = BottleStore(tmp_path / "Bottles")
    store.load()
    created = _create(store, "Steam")

    reloaded = BottleStore(tmp_path / "Bottles")
    bottles = reloaded.load()

    assert [bottle.bottle_id for bottle in bottles] == [created.bottle_id]
    assert bottles[0].created_at == created.created_at


def test_load_rebuilds_missing_index_from_metadata_sorted_by_name(tmp_path: Path) -> None:
    store = BottleStore(tmp_path / "Bottles")
    store.load()
    _create(store, "zeta")
    _create(store, "Alpha")
    store.index_path.unlink()

    rebuilt = BottleStore(tmp_path / "Bottles")
    bottles = rebuilt.load()

    assert [bottle.name for bottle in bottles] == ["Alpha", "zeta"]
    assert rebuilt.index_path.exists()


def test_load_rejects_non_array_index(tmp_path: Path) -> None:
    root = tmp_path / "Bottles"
    root.mkdir()
    (root / "bottles.json").write_text("{}", "utf-8")

    with pytest.raises(TypeError, match="Expected JSON array"):
        BottleStore(root).load()


def test_find_by_id_or_case_insensitive_name(tmp_path: Path) -> None:
    store = BottleStore(tmp_path / "Bottles")
    store.load()
    bottle = _create(store, "Office")

    assert store.find(bottle.bottle_id) == bottle
    assert store.find("office") == bottle
    with pytest.raises(BottleNotFoundError, match="Bottle not found: Other"):
        store.find("Other")


def test_update_bumps_timestamp_and_ignores_unknown(tmp_path: Path) -> None:
    store = BottleStore(tmp_path / "Bottles")
    store.load()
    bottle = _create(store, "Office")
    bottle.shortcuts.append(Shortcut(shortcut_id="s1", name="Word", exe_path="C:/word.exe"))

    updated = store.update_bottle(bottle)

    assert updated is not None
    assert updated.updated_at >= bottle.updated_at
    assert store.get(bottle.bottle_id).shortcuts[0].name == "Word"
    stranger = Bottle(
        bottle_id="unknown",
        name="Stranger",
        win_version=WindowsVersion.WIN10,
        arch=BottleArch.WIN64,
        runtime_id="rt-1",
        created_at=bottle.created_at,
        updated_at=bottle.updated_at,
    )
    assert store.update_bottle(stranger) is None


def test_delete_removes_record_and_folder(tmp_path: Path) -> None:
    store = BottleStore(tmp_path / "Bottles")
    store.load()
    bottle = _create(store, "Temp")
    folder = store.prefix_path(bottle)
    assert folder.is_dir()

    store.delete_bottle(bottle.bottle_id)
    store.delete_bottle("not-there")

    assert store.bottles == []
    assert not folder.exists()
    assert json.loads(store.index_path.read_text("utf-8")) == []


def test_clone_copies_configuration_with_fresh_identity(tmp_path: Path) -> None:
    store = BottleStore(tmp_path / "Bottles")
    store.load()
    source = _create(store, "Base")
    source.dll_overrides["d3d9"] = "native"

    clone = store.clone_bottle(source.bottle_id, "Base Copy")

    assert clone.bottle_id != source.bottle_id
    assert clone.name == "Base Copy"
    assert clone.dll_overrides == {"d3d9": "native"}
    assert clone.dll_overrides is not source.dll_overrides
    metadata = json.loads((store.prefix_path(clone) / "metadata.json").read_text("utf-8"))
    assert metadata["id"] == clone.bottle_id
