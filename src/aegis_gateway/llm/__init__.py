from .. import config
from ..errors import ConfigurationError
from .base import LLMProvider, ProviderRequest
from .gemini import GeminiProvider
from .mock import MockLLMProvider
from .openai_chat import OpenAIProvider

__all__ = [
    "LLMProvider",
    "ProviderRequest",
    "GeminiProvider",
    "MockLLMProvider",
    "OpenAIProvider",
    "get_provider",
]


def get_provider() -> LLMProvider:
    """Build the configured provider. Raises ConfigurationError if its key is missing."""
    name = config.provider_name()
    api_key = config.provider_api_key(name)

    if name == "gemini":
        return GeminiProvider(
            api_key,
            model=config.gemini_model_id(),
            timeout=config.upstream_timeout(),
        )
    if name == "openai":
        return OpenAIProvider(
            api_key,
            model=config.openai_model_id(),
            base_url=config.openai_base_url(),
            timeout=config.upstream_timeout(),
        )
    if name == "mock":
        return MockLLMProvider()
    raise ConfigurationError(f"No provider registered for '{name}'")
