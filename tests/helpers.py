"""Test helpers: a scripted adapter that replays canned OpenAI-shaped turns."""

import json
from typing import Any, AsyncIterator

from llmsdk.adapters import BaseAdapter, ChatCompletionRequest, CompletionResult
from llmsdk.events import (
    ActionArgsEvent,
    ActionStartEvent,
    DoneEvent,
    ErrorEvent,
    MessageDeltaEvent,
    MessageEndEvent,
    MessageStartEvent,
    StreamEvent,
)
from llmsdk.models import ToolCall


def text_turn(*chunks: str) -> dict[str, Any]:
    return {"text": list(chunks), "tool_calls": [], "finish_reason": "stop"}


def tool_turn(*calls: tuple, text: str = "", finish_reason: str = "tool_calls") -> dict[str, Any]:
    return {"text": [text] if text else [], "tool_calls": list(calls), "finish_reason": finish_reason}


def _raw_response(turn: dict[str, Any]) -> dict[str, Any]:
    text = "".join(turn["text"])
    message: dict[str, Any] = {"role": "assistant", "content": text or None}
    if turn["tool_calls"]:
        message["tool_calls"] = [
            {"id": call_id, "type": "function", "function": {"name": name, "arguments": json.dumps(args)}}
            for call_id, name, args in turn["tool_calls"]
        ]
    return {"choices": [{"index": 0, "message": message, "finish_reason": turn["finish_reason"]}]}


class ScriptedAdapter(BaseAdapter):
    """Replays one scripted turn per model call and records each request.

    A turn is a dict built by ``text_turn``/``tool_turn``, an ``ErrorEvent``
    to emit as a transport failure, or an exception to raise. The last turn
    repeats once the script runs out.
    """

    provider = "openai"
    default_model = "scripted-model"

    def __init__(self, turns: list[Any], **kwargs: Any):
        super().__init__(**kwargs)
        self.turns = list(turns)
        self.requests: list[ChatCompletionRequest] = []

    def _next_turn(self, request: ChatCompletionRequest) -> Any:
        self.requests.append(request)
        index = min(len(self.requests), len(self.turns)) - 1
        return self.turns[index]

    async def stream(self, request: ChatCompletionRequest) -> AsyncIterator[StreamEvent]:
        turn = self._next_turn(request)
        if isinstance(turn, ErrorEvent):
            yield turn
            return
        if isinstance(turn, Exception):
            raise turn

        yield MessageStartEvent(id=f"msg_{len(self.requests)}")
        for chunk in turn["text"]:
            yield MessageDeltaEvent(content=chunk)
        for call_id, name, args in turn["tool_calls"]:
            yield ActionStartEvent(id=call_id, name=name)
            yield ActionArgsEvent(id=call_id, args=json.dumps(args))
        yield MessageEndEvent()
        yield DoneEvent(raw_response=_raw_response(turn))


class ScriptedCompleteAdapter(ScriptedAdapter):
    """Scripted adapter that also answers non-streaming calls."""

    def __init__(self, turns: list[Any], **kwargs: Any):
        super().__init__(turns, **kwargs)
        self.complete_calls = 0

    async def complete(self, request: ChatCompletionRequest) -> CompletionResult:
        self.complete_calls += 1
        turn = self._next_turn(request)
        if isinstance(turn, Exception):
            raise turn
        raw = _raw_response(turn)
        return CompletionResult(
            content="".join(turn["text"]),
            tool_calls=[ToolCall(id=i, name=n, input=a) for i, n, a in turn["tool_calls"]],
            stop_reason=turn["finish_reason"],
            raw_response=raw,
        )
