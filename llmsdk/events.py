"""
llmsdk - Stream event protocol.

Every component above the adapters speaks in these events. Each variant is a
dataclass whose ``to_dict()`` produces the camelCase wire object sent over SSE.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional

from .models import Message, ToolCall


class StreamEventType(str, Enum):
    """Types of events emitted during one loop invocation."""

    MESSAGE_START = "message:start"
    MESSAGE_DELTA = "message:delta"
    MESSAGE_END = "message:end"

    THINKING_START = "thinking:start"
    THINKING_DELTA = "thinking:delta"
    THINKING_END = "thinking:end"

    ACTION_START = "action:start"
    ACTION_ARGS = "action:args"
    ACTION_END = "action:end"

    TOOL_CALLS = "tool_calls"

    LOOP_ITERATION = "loop:iteration"
    LOOP_COMPLETE = "loop:complete"

    ERROR = "error"
    DONE = "done"


@dataclass
class StreamEvent:
    """Base class for all stream events."""

    type: ClassVar[StreamEventType]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value}


@dataclass
class MessageStartEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.MESSAGE_START
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "id": self.id}


@dataclass
class MessageDeltaEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.MESSAGE_DELTA
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.content}


@dataclass
class MessageEndEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.MESSAGE_END


@dataclass
class ThinkingStartEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.THINKING_START


@dataclass
class ThinkingDeltaEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.THINKING_DELTA
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.content}


@dataclass
class ThinkingEndEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.THINKING_END


@dataclass
class ActionStartEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.ACTION_START
    id: str = ""
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "id": self.id, "name": self.name}


@dataclass
class ActionArgsEvent(StreamEvent):
    """Complete argument text of one tool call, fragments already joined."""

    type: ClassVar[StreamEventType] = StreamEventType.ACTION_ARGS
    id: str = ""
    args: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "id": self.id, "args": self.args}


@dataclass
class ActionEndEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.ACTION_END
    id: str = ""
    name: Optional[str] = None
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "id": self.id}
        if self.name is not None:
            data["name"] = self.name
        if self.error is not None:
            data["error"] = self.error
        else:
            data["result"] = self.result
        return data


@dataclass
class ToolCallsEvent(StreamEvent):
    """Tool calls the caller must execute before resubmitting."""

    type: ClassVar[StreamEventType] = StreamEventType.TOOL_CALLS
    tool_calls: list[ToolCall] = field(default_factory=list)
    assistant_message: Optional[Message] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "toolCalls": [call.to_event_dict() for call in self.tool_calls],
            "assistantMessage": self.assistant_message.to_dict() if self.assistant_message else None,
        }


@dataclass
class LoopIterationEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.LOOP_ITERATION
    iteration: int = 0
    max_iterations: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "iteration": self.iteration,
            "maxIterations": self.max_iterations,
        }


@dataclass
class LoopCompleteEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.LOOP_COMPLETE
    iterations: int = 0
    max_iterations_reached: bool = False
    aborted: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "iterations": self.iterations}
        if self.max_iterations_reached:
            data["maxIterationsReached"] = True
        if self.aborted:
            data["aborted"] = True
        return data


@dataclass
class ErrorEvent(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.ERROR
    message: str = ""
    code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.code is not None:
            data["code"] = self.code
        return data


@dataclass
class DoneEvent(StreamEvent):
    """
    Terminal event.

    Adapters attach the vendor-shaped response they assembled as
    ``raw_response`` so the loop can hand it to the formatter. That field is
    internal and never serialized.
    """

    type: ClassVar[StreamEventType] = StreamEventType.DONE
    messages: Optional[list[Message]] = None
    requires_action: bool = False
    usage: Optional[dict[str, Any]] = None
    raw_response: Any = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.messages is not None:
            data["messages"] = [m.to_dict() for m in self.messages]
        if self.requires_action:
            data["requiresAction"] = True
        if self.usage is not None:
            data["usage"] = self.usage
        return data


def event_from_dict(data: dict[str, Any]) -> StreamEvent:
    """Rebuild a stream event from its wire form.

    Raises:
        ValueError: If the ``type`` field is missing or unknown.
    """
    event_type = StreamEventType(data.get("type"))

    if event_type == StreamEventType.MESSAGE_START:
        return MessageStartEvent(id=data.get("id", ""))
    if event_type == StreamEventType.MESSAGE_DELTA:
        return MessageDeltaEvent(content=data.get("content", ""))
    if event_type == StreamEventType.MESSAGE_END:
        return MessageEndEvent()
    if event_type == StreamEventType.THINKING_START:
        return ThinkingStartEvent()
    if event_type == StreamEventType.THINKING_DELTA:
        return ThinkingDeltaEvent(content=data.get("content", ""))
    if event_type == StreamEventType.THINKING_END:
        return ThinkingEndEvent()
    if event_type == StreamEventType.ACTION_START:
        return ActionStartEvent(id=data.get("id", ""), name=data.get("name", ""))
    if event_type == StreamEventType.ACTION_ARGS:
        return ActionArgsEvent(id=data.get("id", ""), args=data.get("args", ""))
    if event_type == StreamEventType.ACTION_END:
        return ActionEndEvent(
            id=data.get("id", ""),
            name=data.get("name"),
            result=data.get("result"),
            error=data.get("error"),
        )
    if event_type == StreamEventType.TOOL_CALLS:
        assistant = data.get("assistantMessage")
        return ToolCallsEvent(
            tool_calls=[ToolCall.from_dict(c) for c in data.get("toolCalls", [])],
            assistant_message=Message.from_dict(assistant) if assistant else None,
        )
    if event_type == StreamEventType.LOOP_ITERATION:
        return LoopIterationEvent(
            iteration=data.get("iteration", 0),
            max_iterations=data.get("maxIterations", 0),
        )
    if event_type == StreamEventType.LOOP_COMPLETE:
        return LoopCompleteEvent(
            iterations=data.get("iterations", 0),
            max_iterations_reached=data.get("maxIterationsReached", False),
            aborted=data.get("aborted", False),
        )
    if event_type == StreamEventType.ERROR:
        return ErrorEvent(message=data.get("message", ""), code=data.get("code"))

    messages = data.get("messages")
    return DoneEvent(
        messages=[Message.from_dict(m) for m in messages] if messages is not None else None,
        requires_action=data.get("requiresAction", False),
        usage=data.get("usage"),
    )
