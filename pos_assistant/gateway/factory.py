"""Backend selection from configuration."""

from typing import Optional

from pos_assistant.config import ModelConfig, SUPPORTED_PROVIDERS, settings
from pos_assistant.gateway.base import ModelBackend
from pos_assistant.gateway.gateway import ModelGateway, RetryPolicy


def create_backend(config: Optional[ModelConfig] = None) -> ModelBackend:
    config = config or settings.model
    if config.provider == "openai":
        from pos_assistant.gateway.openai_backend import OpenAIBackend
        return OpenAIBackend(config)
    if config.provider == "ollama":
        from pos_assistant.gateway.ollama_backend import OllamaBackend
        return OllamaBackend(config)
    raise ValueError(
        f"Unsupported LLM provider {config.provider!r}; expected one of {SUPPORTED_PROVIDERS}"
    )


def create_gateway(config: Optional[ModelConfig] = None) -> ModelGateway:
    config = config or settings.model
    return ModelGateway(create_backend(config), RetryPolicy.from_config(config))
