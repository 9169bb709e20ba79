from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


# Load environment variables from a local .env if present (harmless in containers)
load_dotenv()


@dataclass(frozen=True)
class Settings:
    llm_api_key: str
    llm_model: str
    llm_provider: str = "openai"  # 'openai' (any OpenAI-compatible endpoint) | 'azure'
    llm_base_url: Optional[str] = None
    llm_api_version: Optional[str] = None
    llm_temperature: float = 0.7
    llm_max_tokens: int = 500
    llm_timeout_seconds: float = 30.0
    llm_max_attempts: int = 3
    chat_db_path: str = "./data/commerce_chat.db"
    seed_data_dir: Optional[str] = None
    log_level: str = "INFO"


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_settings() -> Settings:
    provider = os.getenv("LLM_PROVIDER", "openai").strip().lower()
    api_key = os.getenv("LLM_API_KEY")
    model = os.getenv("LLM_MODEL")
    base_url = os.getenv("LLM_BASE_URL") or None

    if provider not in ("openai", "azure"):
        raise RuntimeError(f"Unsupported LLM_PROVIDER: {provider!r} (expected 'openai' or 'azure')")

    required = {"LLM_API_KEY": api_key, "LLM_MODEL": model}
    if provider == "azure":
        # Azure needs an explicit endpoint
        required["LLM_BASE_URL"] = base_url
    missing = [name for name, value in required.items() if not value]
    if missing:
        raise RuntimeError(
            "Missing required environment variables: " + ", ".join(missing)
        )

    return Settings(
        llm_api_key=api_key,
        llm_model=model,
        llm_provider=provider,
        llm_base_url=base_url,
        llm_api_version=os.getenv("LLM_API_VERSION") or None,
        llm_temperature=_env_float("LLM_TEMPERATURE", 0.7),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", 500),
        llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0),
        llm_max_attempts=max(1, _env_int("LLM_MAX_ATTEMPTS", 3)),
        chat_db_path=os.getenv("CHAT_DB_PATH", "./data/commerce_chat.db"),
        seed_data_dir=os.getenv("SEED_DATA_DIR") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
