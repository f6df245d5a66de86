"""Summary: Application configuration for InboxForge.

Importance: Thresholds, provider roots, and credentials come from one layered source.
Alternatives: Use pydantic-settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for providers, storage, and learning.

    Importance: Services receive settings explicitly instead of reading the environment.
    Alternatives: Read os.environ at each call site.
    """

    db_path: str
    ai_provider: str
    openai_api_key: str | None
    openai_model: str
    ollama_url: str
    ollama_model: str
    api_host: str
    api_port: int
    api_key: str
    gmail_api_base: str
    graph_api_base: str
    http_timeout_seconds: float
    http_max_attempts: int
    similarity_minor: float
    similarity_moderate: float
    similarity_major: float
    refinement_threshold: int
    min_voice_confidence: float
    learning_lock_timeout_seconds: int
    log_level: str

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Layer environment variables and .env over the shipped defaults.

        Importance: Every setting has a documented default in config/defaults.json.
        Alternatives: Require every variable to be exported.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            db_path=os.getenv("INBOXFORGE_DB_PATH", defaults["db_path"]),
            ai_provider=os.getenv("INBOXFORGE_AI_PROVIDER", defaults["ai_provider"]),
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults["openai_model"]),
            ollama_url=os.getenv("OLLAMA_URL", defaults["ollama_url"]),
            ollama_model=os.getenv("OLLAMA_MODEL", defaults["ollama_model"]),
            api_host=os.getenv("INBOXFORGE_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("INBOXFORGE_API_PORT", defaults["api_port"])),
            api_key=os.getenv("INBOXFORGE_API_KEY", defaults["api_key"]),
            gmail_api_base=os.getenv("INBOXFORGE_GMAIL_API_BASE", defaults["gmail_api_base"]),
            graph_api_base=os.getenv("INBOXFORGE_GRAPH_API_BASE", defaults["graph_api_base"]),
            http_timeout_seconds=float(
                os.getenv("INBOXFORGE_HTTP_TIMEOUT_SECONDS", defaults["http_timeout_seconds"])
            ),
            http_max_attempts=int(
                os.getenv("INBOXFORGE_HTTP_MAX_ATTEMPTS", defaults["http_max_attempts"])
            ),
            similarity_minor=float(
                os.getenv("INBOXFORGE_SIMILARITY_MINOR", defaults["similarity_minor"])
            ),
            similarity_moderate=float(
                os.getenv("INBOXFORGE_SIMILARITY_MODERATE", defaults["similarity_moderate"])
            ),
            similarity_major=float(
                os.getenv("INBOXFORGE_SIMILARITY_MAJOR", defaults["similarity_major"])
            ),
            refinement_threshold=int(
                os.getenv("INBOXFORGE_REFINEMENT_THRESHOLD", defaults["refinement_threshold"])
            ),
            min_voice_confidence=float(
                os.getenv("INBOXFORGE_MIN_VOICE_CONFIDENCE", defaults["min_voice_confidence"])
            ),
            learning_lock_timeout_seconds=int(
                os.getenv(
                    "INBOXFORGE_LEARNING_LOCK_TIMEOUT_SECONDS",
                    defaults["learning_lock_timeout_seconds"],
                )
            ),
            log_level=os.getenv("INBOXFORGE_LOG_LEVEL", defaults["log_level"]),
        )


def load_defaults(path: Path) -> dict[str, Any]:
    """Summary: Read the defaults file.

    Importance: A missing file is an installation error, not a silent fallback.
    Alternatives: Embed defaults as dataclass field values.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Copy KEY=value lines from a .env file into unset environment variables.

    Importance: Keeps mailbox tokens and API keys out of code.
    Alternatives: Use python-dotenv.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip().strip('"'))
