"""
llmsdk - Agentic completion orchestration for LLM backends.

Drives a bounded model-call / tool-dispatch loop against OpenAI, Anthropic,
Gemini, Ollama and OpenAI-compatible backends, and reports progress as a
stream of typed events.
"""

__version__ = "0.1.0"

from .adapters import (
    AdapterConfig,
    AnthropicAdapter,
    AzureOpenAIAdapter,
    BaseAdapter,
    ChatCompletionRequest,
    CompletionResult,
    GeminiAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    create_adapter,
    resolve_provider,
)
from .client import AsyncChatClient, ChatClient
from .events import (
    ActionArgsEvent,
    ActionEndEvent,
    ActionStartEvent,
    DoneEvent,
    ErrorEvent,
    LoopCompleteEvent,
    LoopIterationEvent,
    MessageDeltaEvent,
    MessageEndEvent,
    MessageStartEvent,
    StreamEvent,
    StreamEventType,
    ThinkingDeltaEvent,
    ThinkingEndEvent,
    ThinkingStartEvent,
    ToolCallsEvent,
    event_from_dict,
)
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    LLMSDKError,
    ProviderError,
    ToolDefinitionError,
    UnsupportedProviderError,
)
from .formatters import ProviderFormatter, get_formatter, get_supported_providers
from .knowledge import KnowledgeBaseConfig, knowledge_base_tool
from .models import (
    AIResponseMode,
    ChatRequest,
    ChatResponse,
    Message,
    MessageAttachment,
    MessageRole,
    RequestConfig,
    ToolCall,
    ToolContext,
    ToolDefinition,
    ToolLocation,
    ToolResult,
)
from .runtime import (
    AgentLoop,
    AgentLoopConfig,
    LoopState,
    Runtime,
    RuntimeConfig,
    collect_events,
)
from .streaming import SSEParser, format_event, sse_payloads
from .tools import ToolDispatcher, ToolRegistry, define_tool

__all__ = [
    "__version__",
    # Runtime
    "Runtime",
    "RuntimeConfig",
    "AgentLoop",
    "AgentLoopConfig",
    "LoopState",
    "collect_events",
    # Models
    "AIResponseMode",
    "ChatRequest",
    "ChatResponse",
    "Message",
    "MessageAttachment",
    "MessageRole",
    "RequestConfig",
    "ToolCall",
    "ToolContext",
    "ToolDefinition",
    "ToolLocation",
    "ToolResult",
    # Tools
    "define_tool",
    "ToolRegistry",
    "ToolDispatcher",
    "KnowledgeBaseConfig",
    "knowledge_base_tool",
    # Events
    "StreamEvent",
    "StreamEventType",
    "MessageStartEvent",
    "MessageDeltaEvent",
    "MessageEndEvent",
    "ThinkingStartEvent",
    "ThinkingDeltaEvent",
    "ThinkingEndEvent",
    "ActionStartEvent",
    "ActionArgsEvent",
    "ActionEndEvent",
    "ToolCallsEvent",
    "LoopIterationEvent",
    "LoopCompleteEvent",
    "ErrorEvent",
    "DoneEvent",
    "event_from_dict",
    # Adapters and formatters
    "AdapterConfig",
    "BaseAdapter",
    "ChatCompletionRequest",
    "CompletionResult",
    "OpenAIAdapter",
    "AzureOpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "OllamaAdapter",
    "create_adapter",
    "resolve_provider",
    "ProviderFormatter",
    "get_formatter",
    "get_supported_providers",
    # Streaming and client
    "SSEParser",
    "format_event",
    "sse_payloads",
    "ChatClient",
    "AsyncChatClient",
    # Exceptions
    "LLMSDKError",
    "ConfigurationError",
    "UnsupportedProviderError",
    "ToolDefinitionError",
    "ProviderError",
    "APIError",
    "AuthenticationError",
]
