"""Provider adapters.

Each adapter performs the network call for one vendor and turns its native
stream into llmsdk stream events.

Supported providers:
- OpenAI (and the OpenAI-compatible xAI/Grok, OpenRouter, DeepSeek and Groq)
- Azure OpenAI
- Anthropic
- Google Gemini
- Ollama

Example usage:

    from llmsdk.adapters import create_adapter

    adapter = create_adapter(model="claude-sonnet-4-20250514")
    async for event in adapter.stream(request):
        print(event.to_dict())

Adapters accept an existing SDK client as their first argument, which is
also how tests substitute fakes:

    from openai import AsyncOpenAI
    from llmsdk.adapters import OpenAIAdapter

    adapter = OpenAIAdapter(AsyncOpenAI(), model="gpt-4o")
"""

import os
from typing import Any, Optional

from ..exceptions import UnsupportedProviderError
from .anthropic_adapter import AnthropicAdapter
from .base import AdapterConfig, BaseAdapter, ChatCompletionRequest, CompletionResult
from .gemini_adapter import GeminiAdapter
from .ollama_adapter import OllamaAdapter
from .openai_adapter import AzureOpenAIAdapter, OpenAIAdapter

# provider -> (base_url, api key environment variable)
OPENAI_COMPATIBLE_HOSTS: dict[str, tuple[str, str]] = {
    "xai": ("https://api.x.ai/v1", "XAI_API_KEY"),
    "grok": ("https://api.x.ai/v1", "XAI_API_KEY"),
    "openrouter": ("https://openrouter.ai/api/v1", "OPENROUTER_API_KEY"),
    "deepseek": ("https://api.deepseek.com", "DEEPSEEK_API_KEY"),
    "groq": ("https://api.groq.com/openai/v1", "GROQ_API_KEY"),
}

SUPPORTED_PROVIDERS = sorted(
    {"openai", "azure", "anthropic", "google", "gemini", "ollama", *OPENAI_COMPATIBLE_HOSTS}
)


def resolve_provider(model: str) -> str:
    """Infer provider from model name if not explicitly set."""
    m = model.lower()
    if m.startswith("claude"):
        return "anthropic"
    if m.startswith("gemini"):
        return "google"
    if m.startswith("grok"):
        return "xai"
    if m.startswith("deepseek"):
        return "deepseek"
    if "/" in m:
        return "openrouter"
    if ":" in m or m.startswith(("llama", "mistral", "qwen", "phi")):
        return "ollama"
    return "openai"


def create_adapter(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    **options: Any,
) -> BaseAdapter:
    """Build the adapter for ``provider``, inferring it from ``model`` if omitted.

    Raises:
        UnsupportedProviderError: If the provider is unknown.
    """
    name = (provider or resolve_provider(model or "")).lower()

    if name == "openai":
        return OpenAIAdapter(model=model, api_key=api_key, base_url=base_url, **options)
    if name in OPENAI_COMPATIBLE_HOSTS:
        default_url, key_env = OPENAI_COMPATIBLE_HOSTS[name]
        return OpenAIAdapter(
            model=model,
            api_key=api_key or os.environ.get(key_env),
            base_url=base_url or default_url,
            provider=name,
            **options,
        )
    if name == "azure":
        return AzureOpenAIAdapter(deployment=model, endpoint=base_url, api_key=api_key, **options)
    if name == "anthropic":
        return AnthropicAdapter(model=model, api_key=api_key, **options)
    if name in ("google", "gemini"):
        return GeminiAdapter(model=model, api_key=api_key, **options)
    if name == "ollama":
        return OllamaAdapter(model=model, base_url=base_url, **options)

    raise UnsupportedProviderError(name, SUPPORTED_PROVIDERS)


__all__ = [
    "AdapterConfig",
    "BaseAdapter",
    "ChatCompletionRequest",
    "CompletionResult",
    "OpenAIAdapter",
    "AzureOpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "OllamaAdapter",
    "OPENAI_COMPATIBLE_HOSTS",
    "SUPPORTED_PROVIDERS",
    "create_adapter",
    "resolve_provider",
]
