"""
llmsdk - Data models shared by formatters, adapters, tools and the agent loop.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

logger = logging.getLogger("llmsdk.models")


class MessageRole(str, Enum):
    """Role of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolLocation(str, Enum):
    """Where a tool is executed."""

    SERVER = "server"
    CLIENT = "client"


class AIResponseMode(str, Enum):
    """How much of a tool result is shown to the model."""

    NONE = "none"
    BRIEF = "brief"
    FULL = "full"


def parse_tool_arguments(raw: Any) -> dict[str, Any]:
    """Parse tool-call arguments into a dict.

    Vendors send arguments either as a JSON string or as an object. Anything
    that does not decode to an object becomes an empty dict so that one bad
    call cannot sink the conversation.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Malformed tool arguments, using empty input: %.200s", raw)
            return {}
        if isinstance(parsed, dict):
            return parsed
    logger.warning("Tool arguments are not an object, using empty input: %r", raw)
    return {}


@dataclass(frozen=True)
class MessageAttachment:
    """An image, file or audio payload attached to a user turn."""

    type: str
    data: Optional[str] = None
    url: Optional[str] = None
    mime_type: Optional[str] = None
    filename: Optional[str] = None

    @property
    def base64_data(self) -> Optional[str]:
        """The raw base64 payload with any data-URI prefix removed."""
        if self.data is None:
            return None
        if self.data.startswith("data:") and "," in self.data:
            return self.data.split(",", 1)[1]
        return self.data

    @property
    def media_type(self) -> str:
        if self.mime_type:
            return self.mime_type
        if self.data and self.data.startswith("data:") and ";" in self.data:
            return self.data[5 : self.data.index(";")]
        return "image/png" if self.type == "image" else "application/octet-stream"

    def as_data_uri(self) -> Optional[str]:
        if self.url:
            return self.url
        if self.data is None:
            return None
        if self.data.startswith("data:"):
            return self.data
        return f"data:{self.media_type};base64,{self.data}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if self.data is not None:
            result["data"] = self.data
        if self.url is not None:
            result["url"] = self.url
        if self.mime_type is not None:
            result["mimeType"] = self.mime_type
        if self.filename is not None:
            result["filename"] = self.filename
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageAttachment":
        return cls(
            type=data.get("type", "image"),
            data=data.get("data"),
            url=data.get("url"),
            mime_type=data.get("mimeType") or data.get("mime_type"),
            filename=data.get("filename"),
        )


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    @property
    def arguments_json(self) -> str:
        return json.dumps(self.input)

    def to_dict(self) -> dict[str, Any]:
        """OpenAI-style representation used inside message history."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_json},
        }

    def to_event_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "args": self.input}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function")
        if isinstance(function, dict):
            return cls(
                id=data.get("id", ""),
                name=function.get("name", ""),
                input=parse_tool_arguments(function.get("arguments")),
            )
        raw_input = data.get("args", data.get("input", data.get("arguments")))
        return cls(id=data.get("id", ""), name=data.get("name", ""), input=parse_tool_arguments(raw_input))


@dataclass(frozen=True)
class Message:
    """
    One turn in a conversation.

    Messages are never mutated once they are part of a conversation; a
    correction is a new turn.
    """

    role: MessageRole
    content: Optional[str] = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None
    name: Optional[str] = None
    attachments: tuple[MessageAttachment, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            result["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            result["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            result["name"] = self.name
        if self.attachments:
            result["attachments"] = [a.to_dict() for a in self.attachments]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        raw_calls = data.get("tool_calls") or data.get("toolCalls") or []
        raw_attachments = data.get("attachments") or []
        content = data.get("content")
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict) and part.get("type") == "text"
            )
        return cls(
            role=MessageRole(data.get("role", "user")),
            content=content,
            tool_calls=tuple(ToolCall.from_dict(c) for c in raw_calls),
            tool_call_id=data.get("tool_call_id") or data.get("toolCallId"),
            name=data.get("name"),
            attachments=tuple(MessageAttachment.from_dict(a) for a in raw_attachments),
        )

    @classmethod
    def user(cls, content: str, attachments: tuple[MessageAttachment, ...] = ()) -> "Message":
        return cls(role=MessageRole.USER, content=content, attachments=attachments)

    @classmethod
    def assistant(cls, content: Optional[str], tool_calls: tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of executing, or failing to execute, one ToolCall."""

    tool_call_id: str
    content: str
    success: bool = True
    error: Optional[str] = None
    name: Optional[str] = None
    result: Any = None

    def to_message(self) -> Message:
        return Message(
            role=MessageRole.TOOL,
            content=self.content,
            tool_call_id=self.tool_call_id,
            name=self.name,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "toolCallId": self.tool_call_id,
            "content": self.content,
            "success": self.success,
        }
        if self.error is not None:
            result["error"] = self.error
        if self.name is not None:
            result["name"] = self.name
        return result


@dataclass
class ToolContext:
    """Context handed to server tool handlers that accept a ``context`` argument."""

    tool_call_id: str
    signal: Optional[asyncio.Event] = None
    thread_id: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.signal is not None and self.signal.is_set()


@dataclass
class ToolDefinition:
    """
    Static description of a callable capability.

    ``location`` decides whether the loop runs the tool through ``handler``
    (server) or hands the call back to the caller (client).
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    location: ToolLocation = ToolLocation.SERVER
    handler: Optional[Callable[..., Any]] = None
    ai_response_mode: AIResponseMode = AIResponseMode.FULL
    ai_context: Union[str, Callable[[Any, dict[str, Any]], str], None] = None

    def to_schema(self) -> dict[str, Any]:
        """Return the provider-neutral schema, without handler or location."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    @property
    def is_server(self) -> bool:
        return self.location == ToolLocation.SERVER

    def to_dict(self) -> dict[str, Any]:
        """Wire form used when a client declares its tools."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], location: ToolLocation = ToolLocation.CLIENT
    ) -> "ToolDefinition":
        schema = data.get("inputSchema") or data.get("input_schema") or data.get("parameters")
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            input_schema=schema or {"type": "object", "properties": {}},
            location=location,
        )


@dataclass
class RequestConfig:
    """Per-request model overrides."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "RequestConfig":
        data = data or {}
        return cls(
            model=data.get("model"),
            temperature=data.get("temperature"),
            max_tokens=data.get("maxTokens", data.get("max_tokens")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.model is not None:
            result["model"] = self.model
        if self.temperature is not None:
            result["temperature"] = self.temperature
        if self.max_tokens is not None:
            result["maxTokens"] = self.max_tokens
        return result


@dataclass
class ChatRequest:
    """Inbound chat request from a calling application."""

    messages: list[Message]
    tools: list[ToolDefinition] = field(default_factory=list)
    system_prompt: Optional[str] = None
    config: RequestConfig = field(default_factory=RequestConfig)
    streaming: bool = True
    thread_id: Optional[str] = None
    knowledge_base: Optional[dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatRequest":
        return cls(
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            tools=[ToolDefinition.from_dict(t) for t in data.get("tools") or []],
            system_prompt=data.get("systemPrompt", data.get("system_prompt")),
            config=RequestConfig.from_dict(data.get("config")),
            streaming=data.get("streaming", True) is not False,
            thread_id=data.get("threadId", data.get("thread_id")),
            knowledge_base=data.get("knowledgeBase", data.get("knowledge_base")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "messages": [m.to_dict() for m in self.messages],
            "tools": [t.to_dict() for t in self.tools],
            "streaming": self.streaming,
        }
        if self.system_prompt is not None:
            result["systemPrompt"] = self.system_prompt
        config = self.config.to_dict()
        if config:
            result["config"] = config
        if self.thread_id is not None:
            result["threadId"] = self.thread_id
        if self.knowledge_base is not None:
            result["knowledgeBase"] = self.knowledge_base
        return result


@dataclass
class ChatResponse:
    """Aggregate of one loop invocation, produced by folding its events."""

    success: bool = True
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[dict[str, Any]] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    requires_action: bool = False
    error: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "content": self.content,
            "toolCalls": [call.to_event_dict() for call in self.tool_calls],
            "toolResults": self.tool_results,
            "messages": [m.to_dict() for m in self.messages],
            "requiresAction": self.requires_action,
        }
        if self.error is not None:
            result["error"] = self.error
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatResponse":
        return cls(
            success=data.get("success", True),
            content=data.get("content", ""),
            tool_calls=[ToolCall.from_dict(c) for c in data.get("toolCalls", [])],
            tool_results=list(data.get("toolResults", [])),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            requires_action=data.get("requiresAction", False),
            error=data.get("error"),
        )
