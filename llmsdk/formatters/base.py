"""Base class for provider formatters.

A formatter is the only place that knows a vendor's message, tool and
response shapes. Formatters hold no per-request state, so a single instance
is shared by every loop invocation.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..models import Message, ToolCall, ToolDefinition, ToolResult


@dataclass
class NativeConversation:
    """Conversation history in a vendor's own message shape.

    Attributes:
        system: System instructions for vendors that take them outside the
            message list. None when the system prompt lives in ``messages``.
        messages: Vendor-native message dicts, in order.
    """

    system: Optional[str] = None
    messages: list[dict[str, Any]] = field(default_factory=list)


def new_tool_call_id(prefix: str = "call") -> str:
    """Synthesize a tool call ID for vendors that do not issue one."""
    return f"{prefix}_{uuid.uuid4().hex[:24]}"


def as_dict(raw_response: Any) -> dict[str, Any]:
    """Coerce a vendor response (dict or SDK model) into a plain dict."""
    if raw_response is None:
        return {}
    if isinstance(raw_response, dict):
        return raw_response
    dump = getattr(raw_response, "model_dump", None)
    if callable(dump):
        return dump()
    return {}


def ensure_object_schema(schema: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Return a JSON schema that is always an object with ``properties``."""
    schema = dict(schema or {})
    schema.setdefault("type", "object")
    if schema["type"] == "object":
        schema.setdefault("properties", {})
    return schema


class ProviderFormatter(ABC):
    """Translate between the uniform model and one vendor family's wire format."""

    name: str = "base"

    @abstractmethod
    def transform_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert tool definitions into the vendor's tool declarations."""

    @abstractmethod
    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        """Extract tool calls from a raw response. Returns [] when there are none."""

    @abstractmethod
    def extract_text_content(self, raw_response: Any) -> str:
        """Concatenate text segments in emission order. Returns "" when there is none."""

    @abstractmethod
    def get_stop_reason(self, raw_response: Any) -> Optional[str]:
        """Return the vendor's stop reason, or None when absent."""

    @abstractmethod
    def is_tool_use_stop(self, raw_response: Any) -> bool:
        """True only when the model stopped to request tool execution."""

    @abstractmethod
    def is_end_turn_stop(self, raw_response: Any) -> bool:
        """True when the model finished its turn naturally."""

    @abstractmethod
    def build_assistant_tool_message(
        self, tool_calls: list[ToolCall], text: Optional[str] = None
    ) -> dict[str, Any]:
        """Build the assistant turn that carries ``tool_calls``."""

    @abstractmethod
    def build_tool_result_message(self, results: list[ToolResult]) -> list[dict[str, Any]]:
        """Build the turn(s) that answer the tool calls, in result order."""

    @abstractmethod
    def format_conversation(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> NativeConversation:
        """Convert canonical history into the vendor's request shape."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
