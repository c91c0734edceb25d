"""Formatter lookup keyed by provider identifier.

Adding a vendor family means registering one formatter here; the agent loop
never branches on provider names.
"""

from ..exceptions import UnsupportedProviderError
from .anthropic_formatter import AnthropicFormatter
from .base import ProviderFormatter
from .gemini_formatter import GeminiFormatter
from .openai_formatter import OpenAIFormatter

_openai = OpenAIFormatter()
_anthropic = AnthropicFormatter()
_gemini = GeminiFormatter()

_FORMATTERS: dict[str, ProviderFormatter] = {
    "openai": _openai,
    "anthropic": _anthropic,
    "google": _gemini,
    "gemini": _gemini,
    # OpenAI-compatible backends
    "ollama": _openai,
    "xai": _openai,
    "grok": _openai,
    "azure": _openai,
    "openrouter": _openai,
    "deepseek": _openai,
    "groq": _openai,
}


def get_formatter(provider: str) -> ProviderFormatter:
    """Return the formatter for ``provider``.

    Raises:
        UnsupportedProviderError: If no formatter is registered.
    """
    formatter = _FORMATTERS.get(provider.lower())
    if formatter is None:
        raise UnsupportedProviderError(provider, get_supported_providers())
    return formatter


def is_provider_supported(provider: str) -> bool:
    return provider.lower() in _FORMATTERS


def get_supported_providers() -> list[str]:
    return sorted(_FORMATTERS)


def register_formatter(provider: str, formatter: ProviderFormatter) -> None:
    """Register or replace the formatter used for ``provider``."""
    _FORMATTERS[provider.lower()] = formatter
