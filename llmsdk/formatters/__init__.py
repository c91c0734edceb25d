"""Provider formatters.

Each formatter translates tool definitions, conversation history and raw
responses for one vendor family:

    from llmsdk.formatters import get_formatter

    formatter = get_formatter("anthropic")
    tools = formatter.transform_tools(registry.definitions())
    calls = formatter.parse_tool_calls(raw_response)
"""

from .anthropic_formatter import AnthropicFormatter
from .base import NativeConversation, ProviderFormatter, new_tool_call_id
from .gemini_formatter import GeminiFormatter, sanitize_schema
from .openai_formatter import OpenAIFormatter
from .registry import (
    get_formatter,
    get_supported_providers,
    is_provider_supported,
    register_formatter,
)

__all__ = [
    "ProviderFormatter",
    "NativeConversation",
    "OpenAIFormatter",
    "AnthropicFormatter",
    "GeminiFormatter",
    "get_formatter",
    "get_supported_providers",
    "is_provider_supported",
    "register_formatter",
    "new_tool_call_id",
    "sanitize_schema",
]
