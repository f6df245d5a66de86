"""Summary: Tests for configuration loading.

Importance: Ensures defaults, .env, and environment overrides behave correctly.
Alternatives: Validate configuration manually during runtime.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from inboxforge.config import AppConfig, load_defaults, load_dotenv

DEFAULTS_PATH = Path(__file__).resolve().parents[1] / "config" / "defaults.json"

_OVERRIDDEN = (
    "INBOXFORGE_DB_PATH",
    "INBOXFORGE_AI_PROVIDER",
    "INBOXFORGE_REFINEMENT_THRESHOLD",
    "INBOXFORGE_SIMILARITY_MINOR",
    "OPENAI_API_KEY",
)


def _workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Summary: Run from a directory holding a copy of the shipped defaults."""

    (tmp_path / "config").mkdir()
    shutil.copy(DEFAULTS_PATH, tmp_path / "config" / "defaults.json")
    monkeypatch.chdir(tmp_path)
    for name in _OVERRIDDEN:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_load_defaults_reads_json(tmp_path: Path) -> None:
    """Summary: Verify defaults are parsed from JSON.

    Importance: Confirms config file is the source of truth for variables.
    Alternatives: Hardcode defaults in the test.
    """

    defaults_path = tmp_path / "defaults.json"
    defaults_path.write_text("{\"db_path\": \"test.db\"}", encoding="utf-8")
    assert load_defaults(defaults_path)["db_path"] == "test.db"


def test_load_defaults_requires_file(tmp_path: Path) -> None:
    """Summary: Verify a missing defaults file is reported."""

    with pytest.raises(FileNotFoundError):
        load_defaults(tmp_path / "missing.json")


def test_load_dotenv_does_not_override_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: Ensure .env fills gaps without replacing exported variables.

    Importance: Exported variables win over local files.
    Alternatives: Let .env always win.
    """

    env_path = tmp_path / ".env"
    env_path.write_text(
        "# local\nINBOXFORGE_AI_PROVIDER=\"ollama\"\nINBOXFORGE_DB_PATH=env.db\n",
        encoding="utf-8",
    )
    monkeypatch.delenv("INBOXFORGE_AI_PROVIDER", raising=False)
    monkeypatch.setenv("INBOXFORGE_DB_PATH", "exported.db")
    load_dotenv(env_path)
    assert os.getenv("INBOXFORGE_AI_PROVIDER") == "ollama"
    assert os.getenv("INBOXFORGE_DB_PATH") == "exported.db"


def test_app_config_uses_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify AppConfig honors the shipped defaults when env is absent.

    Importance: Thresholds must match the documented learning behavior.
    Alternatives: Inline defaults directly in the AppConfig class.
    """

    _workspace(tmp_path, monkeypatch)
    config = AppConfig.from_env()
    assert config.db_path == "inboxforge.db"
    assert config.ai_provider == "mock"
    assert config.openai_api_key is None
    assert config.api_port == 8000
    assert config.similarity_minor == 0.9
    assert config.similarity_moderate == 0.7
    assert config.similarity_major == 0.4
    assert config.refinement_threshold == 10
    assert config.min_voice_confidence == 0.35
    assert config.http_max_attempts == 3


def test_app_config_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify environment variables and .env override defaults."""

    workspace = _workspace(tmp_path, monkeypatch)
    (workspace / ".env").write_text("INBOXFORGE_AI_PROVIDER=openai\n", encoding="utf-8")
    monkeypatch.setenv("INBOXFORGE_DB_PATH", "custom.db")
    monkeypatch.setenv("INBOXFORGE_REFINEMENT_THRESHOLD", "5")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    config = AppConfig.from_env()
    assert config.db_path == "custom.db"
    assert config.ai_provider == "openai"
    assert config.refinement_threshold == 5
    assert config.openai_api_key == "sk-test"
