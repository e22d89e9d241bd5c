"""Bottle records, runtimes, and Wine command construction."""

from wine_bottles.bottles.archive import ExportImportService
from wine_bottles.bottles.installer import RuntimeInstaller
from wine_bottles.bottles.models import Bottle, BottleArch, Runtime, Shortcut, WindowsVersion
from wine_bottles.bottles.runtime import HostPlatform, RuntimeManager
from wine_bottles.bottles.store import BottleStore
from wine_bottles.bottles.wine import WineService

__all__ = [
    "Bottle",
    "BottleArch",
    "BottleStore",
    "ExportImportService",
    "HostPlatform",
    "Runtime",
    "RuntimeInstaller",
    "RuntimeManager",
    "Shortcut",
    "WindowsVersion",
    "WineService",
]
