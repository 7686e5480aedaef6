"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping

from dotenv import find_dotenv, load_dotenv

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_FALLBACK_MODEL = "llama-3.1-8b-instant"
PLACEHOLDER_KEY = "your_groq_api_key_here"

ENV_PREFIX = "DOCQUERY_"


@dataclass(slots=True)
class AppConfig:
    documents_path: Path = Path("generated_documents")
    db_path: Path | None = None
    use_store: bool = False

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    fallback_model: str = DEFAULT_FALLBACK_MODEL
    temperature: float = 0.3

    select_count: int = 5
    preview_chars: int = 350
    preview_budget: int = 8000
    answer_budget: int = 10000
    retry_budget: int = 5000
    retry_documents: int = 3
    window_chars: int = 1000
    select_timeout: float = 15.0
    answer_timeout: float = 60.0
    answer_max_tokens: int = 1024
    retry_max_tokens: int = 512

    cache_size: int = 100
    rate_limit_window: float = 60.0
    rate_limit_max: int = 10
    rate_limit_max_clients: int = 10000
    max_query_length: int = 2000

    def __post_init__(self) -> None:
        self.documents_path = Path(self.documents_path)
        if self.db_path is None:
            self.db_path = Path("data/docquery.db")

    @property
    def llm_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_KEY

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = Path("data/docquery.db")
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, *, dotenv: bool = True
    ) -> "AppConfig":
        """Build a config from ``DOCQUERY_*`` variables, loading ``.env`` first."""
        if environ is None:
            if dotenv:
                load_dotenv(find_dotenv(usecwd=True))
            environ = os.environ

        overrides: Dict[str, Any] = {}
        for item in fields(cls):
            raw = environ.get(ENV_PREFIX + item.name.upper())
            if raw is None or raw == "":
                continue
            overrides[item.name] = _coerce(item.name, raw, item.default)

        if "api_key" not in overrides:
            key = environ.get("GROQ_API_KEY") or environ.get("LLM_API_KEY")
            if key:
                overrides["api_key"] = key
        return cls(**overrides)


def _coerce(name: str, raw: str, default: Any) -> Any:
    if name in ("documents_path", "db_path"):
        return Path(raw)
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
