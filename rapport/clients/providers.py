"""Provider adapter selection."""

from rapport.clients.base import Provider, ProviderAdapter, ProviderConfig
from rapport.clients.gemini import GeminiAdapter
from rapport.clients.openai import OpenAIAdapter


def create_provider_adapter(config: ProviderConfig) -> ProviderAdapter:
    """Create the adapter for the configured provider."""
    if config.provider == Provider.GEMINI:
        return GeminiAdapter(config)
    return OpenAIAdapter(config)
