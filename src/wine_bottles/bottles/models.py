"""Persisted records for bottles, runtimes, and shortcuts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from wine_bottles.common import from_iso, to_iso


class WindowsVersion(str, Enum):
    """Windows version reported inside a bottle."""

    WIN10 = "win10"
    WIN11 = "win11"

    @property
    def display_name(self) -> str:
        return {"win10": "Windows 10", "win11": "Windows 11"}[self.value]


class BottleArch(str, Enum):
    """Prefix architecture passed as ``WINEARCH``."""

    WIN64 = "win64"

    @property
    def display_name(self) -> str:
        return "64-bit"


@dataclass(slots=True)
class Shortcut:
    """Executable discovered inside a bottle's Program Files."""

    shortcut_id: str
    name: str
    exe_path: str
    arguments: str = ""
    icon_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.shortcut_id,
            "name": self.name,
            "exePath": self.exe_path,
            "arguments": self.arguments,
            "iconPath": self.icon_path,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Shortcut:
        return cls(
            shortcut_id=_required_str(raw, "id", "shortcut"),
            name=_required_str(raw, "name", "shortcut"),
            exe_path=_required_str(raw, "exePath", "shortcut"),
            arguments=str(raw.get("arguments") or ""),
            icon_path=_optional_str(raw, "iconPath", "shortcut"),
        )


@dataclass(slots=True)
class Bottle:
    """Isolated Wine prefix with its configuration."""

    bottle_id: str
    name: str
    win_version: WindowsVersion
    arch: BottleArch
    runtime_id: str
    created_at: datetime
    updated_at: datetime
    environment: dict[str, str] = field(default_factory=dict)
    dll_overrides: dict[str, str] = field(default_factory=dict)
    shortcuts: list[Shortcut] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.bottle_id,
            "name": self.name,
            "winVersion": self.win_version.value,
            "arch": self.arch.value,
            "runtimeID": self.runtime_id,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "environment": dict(self.environment),
            "dllOverrides": dict(self.dll_overrides),
            "shortcuts": [shortcut.to_dict() for shortcut in self.shortcuts],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Bottle:
        if not isinstance(raw, dict):
            raise TypeError("bottle record must be an object")
        raw_shortcuts = raw.get("shortcuts", [])
        if not isinstance(raw_shortcuts, list):
            raise TypeError("bottle.shortcuts must be an array")
        try:
            win_version = WindowsVersion(raw.get("winVersion"))
            arch = BottleArch(raw.get("arch"))
        except ValueError as error:
            raise ValueError(f"Invalid bottle record: {error}") from error
        return cls(
            bottle_id=_required_str(raw, "id", "bottle"),
            name=_required_str(raw, "name", "bottle"),
            win_version=win_version,
            arch=arch,
            runtime_id=_required_str(raw, "runtimeID", "bottle"),
            created_at=from_iso(_required_str(raw, "createdAt", "bottle")),
            updated_at=from_iso(_required_str(raw, "updatedAt", "bottle")),
            environment=_str_map(raw, "environment", "bottle"),
            dll_overrides=_str_map(raw, "dllOverrides", "bottle"),
            shortcuts=[Shortcut.from_dict(item) for item in raw_shortcuts],
        )


@dataclass(slots=True)
class Runtime:
    """Installed or detected Wine toolchain."""

    runtime_id: str
    name: str
    wine_path: str
    version: str
    root_path: str
    installed_at: datetime
    source_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.runtime_id,
            "name": self.name,
            "winePath": self.wine_path,
            "version": self.version,
            "rootPath": self.root_path,
            "sourceURL": self.source_url,
            "installedAt": to_iso(self.installed_at),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Runtime:
        if not isinstance(raw, dict):
            raise TypeError("runtime record must be an object")
        return cls(
            runtime_id=_required_str(raw, "id", "runtime"),
            name=_required_str(raw, "name", "runtime"),
            wine_path=_required_str(raw, "winePath", "runtime"),
            version=_required_str(raw, "version", "runtime"),
            root_path=str(raw.get("rootPath") or ""),
            source_url=_optional_str(raw, "sourceURL", "runtime"),
            installed_at=from_iso(_required_str(raw, "installedAt", "runtime")),
        )


def _required_str(raw: dict[str, Any], key: str, record: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{record}.{key} must be a non-empty string")
    return value


def _optional_str(raw: dict[str, Any], key: str, record: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"{record}.{key} must be a string when provided")
    return value


def _str_map(raw: dict[str, Any], key: str, record: str) -> dict[str, str]:
    value = raw.get(key, {})
    if not isinstance(value, dict):
        raise TypeError(f"{record}.{key} must be an object")
    return {str(name): str(item) for name, item in value.items()}
