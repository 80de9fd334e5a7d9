"""
Centralized configuration with environment variable overrides.

Store identity, persona selection, model provider settings, and the
dispatch confidence policy are all configurable here. Nothing is
hardcoded in orchestration or tool logic.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_PERSONA_DIR = str(Path(__file__).parent / "prompts" / "personas")
SUPPORTED_PROVIDERS = ("openai", "ollama")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class StoreConfig:
    """Store identity and the persona the assistant plays."""

    store_id: str = os.getenv("STORE_ID", "store-001")
    store_name: str = os.getenv("STORE_NAME", "Corner Coffee")
    currency: str = os.getenv("STORE_CURRENCY", "USD")
    persona: str = os.getenv("PERSONA", "american_barista")
    locale: str = os.getenv("STORE_LOCALE", "en-US")


@dataclass(frozen=True)
class ModelConfig:
    """Language model provider settings and retry budget."""

    provider: str = os.getenv("LLM_PROVIDER", "openai")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    base_url: str = os.getenv("LLM_BASE_URL", "")
    api_key: str = os.getenv("OPENAI_API_KEY", "")
    request_timeout_sec: float = _safe_float("LLM_REQUEST_TIMEOUT", "30.0")
    max_attempts: int = _safe_int("LLM_MAX_ATTEMPTS", "3")
    backoff_base_sec: float = _safe_float("LLM_BACKOFF_BASE", "0.5")
    backoff_max_sec: float = _safe_float("LLM_BACKOFF_MAX", "4.0")
    probe_before_turn: bool = _safe_bool("LLM_PROBE_BEFORE_TURN", "false")


@dataclass(frozen=True)
class DispatchConfig:
    """Confidence gating thresholds and per-turn limits."""

    execute_threshold: float = _safe_float("EXECUTE_THRESHOLD", "0.5")
    confirm_threshold: float = _safe_float("CONFIRM_THRESHOLD", "0.8")
    history_window: int = _safe_int("HISTORY_WINDOW", "6")
    max_search_results: int = _safe_int("MAX_SEARCH_RESULTS", "5")
    max_utterance_chars: int = _safe_int("MAX_UTTERANCE_CHARS", "500")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    store: StoreConfig = field(default_factory=StoreConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    persona_dir: str = os.getenv("PERSONA_DIR", DEFAULT_PERSONA_DIR)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    assistant_name: str = os.getenv("ASSISTANT_NAME", "pos-assistant")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.model.provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"LLM_PROVIDER must be one of {SUPPORTED_PROVIDERS}, got {config.model.provider!r}"
        )
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.request_timeout_sec <= 0:
        raise ValueError(
            f"LLM_REQUEST_TIMEOUT must be > 0, got {config.model.request_timeout_sec}"
        )
    if config.model.max_attempts < 1:
        raise ValueError(
            f"LLM_MAX_ATTEMPTS must be >= 1, got {config.model.max_attempts}"
        )
    if config.model.backoff_base_sec < 0 or config.model.backoff_max_sec < 0:
        raise ValueError("LLM_BACKOFF_BASE and LLM_BACKOFF_MAX must be >= 0")

    for name, value in [
        ("EXECUTE_THRESHOLD", config.dispatch.execute_threshold),
        ("CONFIRM_THRESHOLD", config.dispatch.confirm_threshold),
    ]:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")
    if config.dispatch.execute_threshold > config.dispatch.confirm_threshold:
        raise ValueError(
            "EXECUTE_THRESHOLD must not exceed CONFIRM_THRESHOLD, "
            f"got {config.dispatch.execute_threshold} > {config.dispatch.confirm_threshold}"
        )
    if config.dispatch.history_window < 1:
        raise ValueError(
            f"HISTORY_WINDOW must be >= 1, got {config.dispatch.history_window}"
        )
    if config.dispatch.max_search_results < 1:
        raise ValueError(
            f"MAX_SEARCH_RESULTS must be >= 1, got {config.dispatch.max_search_results}"
        )
    if config.dispatch.max_utterance_chars < 1:
        raise ValueError(
            f"MAX_UTTERANCE_CHARS must be >= 1, got {config.dispatch.max_utterance_chars}"
        )
    if len(config.store.currency) != 3:
        raise ValueError(
            f"STORE_CURRENCY must be a 3-letter ISO code, got {config.store.currency!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded for '%s' (persona=%s, provider=%s)",
        config.store.store_name, config.store.persona, config.model.provider,
    )
    return config


# Singleton instance
settings = load_config()
