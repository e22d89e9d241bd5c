from __future__ import annotations

from pathlib import Path

import allure
import pytest

from wine_bottles.config import RuntimeSettings, Settings, TaskSettings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings"),
]

_ENV_KEYS = (
    "WINE_BOTTLES_HOME",
    "WINE_BOTTLES_BOTTLES_ROOT",
    "WINE_BOTTLES_RUNTIMES_ROOT",
    "WINE_BOTTLES_LOGS_ROOT",
    "WINE_BOTTLES_TERMINATE_GRACE_SECONDS",
    "WINE_BOTTLES_DRAIN_TIMEOUT_SECONDS",
    "WINE_BOTTLES_MAX_LOG_LINES",
    "WINE_BOTTLES_DOWNLOAD_TIMEOUT_SECONDS",
    "WINE_BOTTLES_DOWNLOAD_MAX_RETRIES",
    "WINE_BOTTLES_USE_ARCH_WRAPPER",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_defaults_live_under_home(tmp_path: Path) -> None:
    settings = Settings.from_env(home=tmp_path)

    assert settings.bottles_root == tmp_path / "Bottles"
    assert settings.runtimes_root == tmp_path / "Runtimes"
    assert settings.logs_root == tmp_path / "Logs"
    assert settings.tasks == TaskSettings()
    assert settings.runtime.use_arch_wrapper is True
    settings.validate()


def test_from_env_reads_home_and_overrides(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("WINE_BOTTLES_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("WINE_BOTTLES_LOGS_ROOT", str(tmp_path / "elsewhere"))
    monkeypatch.setenv("WINE_BOTTLES_TERMINATE_GRACE_SECONDS", "0.5")
    monkeypatch.setenv("WINE_BOTTLES_MAX_LOG_LINES", "50")
    monkeypatch.setenv("WINE_BOTTLES_DOWNLOAD_MAX_RETRIES", "0")
    monkeypatch.setenv("WINE_BOTTLES_USE_ARCH_WRAPPER", "off")

    settings = Settings.from_env()

    assert settings.bottles_root == tmp_path / "home" / "Bottles"
    assert settings.logs_root == tmp_path / "elsewhere"
    assert settings.tasks.terminate_grace_seconds == 0.5
    assert settings.tasks.max_log_lines == 50
    assert settings.runtime.download_max_retries == 0
    assert settings.runtime.use_arch_wrapper is False


def test_invalid_boolean_names_the_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WINE_BOTTLES_USE_ARCH_WRAPPER", "sometimes")

    with pytest.raises(ValueError, match="WINE_BOTTLES_USE_ARCH_WRAPPER"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (
            Settings(tasks=TaskSettings(terminate_grace_seconds=-1)),
            "TERMINATE_GRACE_SECONDS",
        ),
        (Settings(tasks=TaskSettings(drain_timeout_seconds=0)), "DRAIN_TIMEOUT_SECONDS"),
        (Settings(tasks=TaskSettings(max_log_lines=0)), "MAX_LOG_LINES"),
        (Settings(runtime=RuntimeSettings(download_max_retries=-1)), "DOWNLOAD_MAX_RETRIES"),
    ],
)
def test_validate_rejects_out_of_range_limits(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()


def test_ensure_directories_creates_roots(tmp_path: Path) -> None:
    settings = Settings.from_env(home=tmp_path / "fresh")

    settings.ensure_directories()

    assert settings.bottles_root.is_dir()
    assert settings.runtimes_root.is_dir()
    assert settings.logs_root.is_dir()
