"""Tests for llmsdk data models and stream events."""

import asyncio

import pytest

from llmsdk.events import (
    ActionEndEvent,
    DoneEvent,
    ErrorEvent,
    LoopCompleteEvent,
    LoopIterationEvent,
    MessageDeltaEvent,
    StreamEventType,
    ToolCallsEvent,
    event_from_dict,
)
from llmsdk.models import (
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
    parse_tool_arguments,
)


class TestParseToolArguments:
    def test_dict_passes_through(self):
        assert parse_tool_arguments({"a": 1}) == {"a": 1}

    def test_json_string(self):
        assert parse_tool_arguments('{"city": "Paris"}') == {"city": "Paris"}

    def test_empty_values(self):
        assert parse_tool_arguments(None) == {}
        assert parse_tool_arguments("") == {}

    def test_malformed_json_becomes_empty(self):
        assert parse_tool_arguments('{"city": ') == {}

    def test_non_object_json_becomes_empty(self):
        assert parse_tool_arguments("[1, 2]") == {}
        assert parse_tool_arguments(42) == {}


class TestMessageAttachment:
    def test_data_uri_parts(self):
        attachment = MessageAttachment(type="image", data="data:image/jpeg;base64,AAAA")
        assert attachment.base64_data == "AAAA"
        assert attachment.media_type == "image/jpeg"
        assert attachment.as_data_uri() == "data:image/jpeg;base64,AAAA"

    def test_raw_base64_defaults(self):
        attachment = MessageAttachment(type="image", data="AAAA")
        assert attachment.media_type == "image/png"
        assert attachment.as_data_uri() == "data:image/png;base64,AAAA"

    def test_url_wins(self):
        attachment = MessageAttachment(type="image", url="https://example.com/cat.png")
        assert attachment.as_data_uri() == "https://example.com/cat.png"
        assert attachment.base64_data is None

    def test_from_dict_accepts_camel_case(self):
        attachment = MessageAttachment.from_dict({"type": "file", "data": "AAAA", "mimeType": "application/pdf"})
        assert attachment.mime_type == "application/pdf"
        assert attachment.to_dict() == {"type": "file", "data": "AAAA", "mimeType": "application/pdf"}


class TestToolCall:
    def test_to_dict_is_openai_shape(self):
        call = ToolCall(id="call_1", name="add", input={"a": 2, "b": 2})
        assert call.to_dict() == {
            "id": "call_1",
            "type": "function",
            "function": {"name": "add", "arguments": '{"a": 2, "b": 2}'},
        }

    def test_from_dict_openai_shape(self):
        call = ToolCall.from_dict(
            {"id": "call_1", "function": {"name": "add", "arguments": '{"a": 1}'}}
        )
        assert call == ToolCall(id="call_1", name="add", input={"a": 1})

    def test_from_dict_event_shape(self):
        call = ToolCall.from_dict({"id": "call_2", "name": "lookup", "args": {"q": "x"}})
        assert call.name == "lookup"
        assert call.input == {"q": "x"}
        assert call.to_event_dict() == {"id": "call_2", "name": "lookup", "args": {"q": "x"}}


class TestMessage:
    def test_user_and_assistant_helpers(self):
        assert Message.user("hi").role == MessageRole.USER
        assert Message.assistant("hello").content == "hello"

    def test_to_dict_always_has_content(self):
        message = Message.assistant(None, (ToolCall(id="c1", name="t"),))
        data = message.to_dict()
        assert data["content"] is None
        assert data["tool_calls"][0]["id"] == "c1"

    def test_from_dict_accepts_camel_case_keys(self):
        message = Message.from_dict(
            {
                "role": "assistant",
                "content": None,
                "toolCalls": [{"id": "c1", "name": "add", "args": {"a": 1}}],
            }
        )
        assert message.tool_calls == (ToolCall(id="c1", name="add", input={"a": 1}),)

        tool = Message.from_dict({"role": "tool", "content": "4", "toolCallId": "c1"})
        assert tool.tool_call_id == "c1"

    def test_from_dict_joins_text_parts(self):
        message = Message.from_dict(
            {"role": "user", "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}
        )
        assert message.content == "ab"

    def test_unknown_role_raises(self):
        with pytest.raises(ValueError):
            Message.from_dict({"role": "narrator", "content": "x"})

    def test_messages_are_immutable(self):
        message = Message.user("hi")
        with pytest.raises(AttributeError):
            message.content = "changed"


class TestToolResult:
    def test_to_message(self):
        result = ToolResult(tool_call_id="c1", content="4", name="add", result=4)
        message = result.to_message()
        assert message.role == MessageRole.TOOL
        assert message.tool_call_id == "c1"
        assert message.content == "4"

    def test_to_dict_includes_error(self):
        result = ToolResult(tool_call_id="c1", content="{}", success=False, error="boom")
        assert result.to_dict() == {"toolCallId": "c1", "content": "{}", "success": False, "error": "boom"}


class TestToolContext:
    def test_cancelled_follows_signal(self):
        signal = asyncio.Event()
        context = ToolContext(tool_call_id="c1", signal=signal)
        assert context.cancelled is False
        signal.set()
        assert context.cancelled is True

    def test_no_signal_is_never_cancelled(self):
        assert ToolContext(tool_call_id="c1").cancelled is False


class TestToolDefinition:
    def test_schema_omits_handler_and_location(self):
        tool = ToolDefinition(name="add", description="Add", handler=lambda input: 0)
        assert tool.to_schema() == {
            "name": "add",
            "description": "Add",
            "input_schema": {"type": "object", "properties": {}},
        }

    def test_from_dict_defaults_to_client(self):
        tool = ToolDefinition.from_dict(
            {"name": "pick_file", "inputSchema": {"type": "object", "properties": {"x": {"type": "string"}}}}
        )
        assert tool.location == ToolLocation.CLIENT
        assert tool.input_schema["properties"] == {"x": {"type": "string"}}
        assert tool.is_server is False


class TestChatRequest:
    def test_from_dict(self):
        request = ChatRequest.from_dict(
            {
                "messages": [{"role": "user", "content": "hi"}],
                "tools": [{"name": "pick_file", "description": "Pick"}],
                "systemPrompt": "Be brief.",
                "config": {"model": "gpt-4o-mini", "temperature": 0.2, "maxTokens": 100},
                "streaming": False,
                "threadId": "t-1",
            }
        )
        assert request.messages == [Message.user("hi")]
        assert request.tools[0].location == ToolLocation.CLIENT
        assert request.system_prompt == "Be brief."
        assert request.config == RequestConfig(model="gpt-4o-mini", temperature=0.2, max_tokens=100)
        assert request.streaming is False
        assert request.thread_id == "t-1"

    def test_streaming_defaults_true(self):
        assert ChatRequest.from_dict({"messages": []}).streaming is True

    def test_to_dict_round_trips(self):
        request = ChatRequest(messages=[Message.user("hi")], system_prompt="s", thread_id="t")
        assert ChatRequest.from_dict(request.to_dict()) == request


class TestChatResponse:
    def test_to_dict(self):
        response = ChatResponse(
            content="4",
            tool_calls=[ToolCall(id="c1", name="pick_file")],
            messages=[Message.assistant("4")],
            requires_action=True,
        )
        data = response.to_dict()
        assert data["success"] is True
        assert data["toolCalls"] == [{"id": "c1", "name": "pick_file", "args": {}}]
        assert data["messages"] == [{"role": "assistant", "content": "4"}]
        assert data["requiresAction"] is True
        assert "error" not in data

    def test_from_dict(self):
        response = ChatResponse.from_dict(
            {"success": False, "content": "", "error": {"message": "boom", "code": "X"}}
        )
        assert response.success is False
        assert response.error == {"message": "boom", "code": "X"}


class TestStreamEvents:
    def test_type_values(self):
        assert MessageDeltaEvent.type == StreamEventType.MESSAGE_DELTA
        assert MessageDeltaEvent(content="hi").to_dict() == {"type": "message:delta", "content": "hi"}

    def test_done_never_serializes_raw_response(self):
        done = DoneEvent(messages=[Message.assistant("hi")], raw_response={"secret": True})
        assert done.to_dict() == {
            "type": "done",
            "messages": [{"role": "assistant", "content": "hi"}],
        }

    def test_done_requires_action_flag(self):
        assert DoneEvent(messages=[], requires_action=True).to_dict() == {
            "type": "done",
            "messages": [],
            "requiresAction": True,
        }

    def test_loop_events(self):
        assert LoopIterationEvent(iteration=1, max_iterations=20).to_dict() == {
            "type": "loop:iteration",
            "iteration": 1,
            "maxIterations": 20,
        }
        assert LoopCompleteEvent(iterations=3, aborted=True).to_dict() == {
            "type": "loop:complete",
            "iterations": 3,
            "aborted": True,
        }
        assert LoopCompleteEvent(iterations=2, max_iterations_reached=True).to_dict() == {
            "type": "loop:complete",
            "iterations": 2,
            "maxIterationsReached": True,
        }

    def test_action_end_error_or_result(self):
        assert ActionEndEvent(id="c1", name="add", result=4).to_dict() == {
            "type": "action:end",
            "id": "c1",
            "name": "add",
            "result": 4,
        }
        assert ActionEndEvent(id="c1", error="boom").to_dict() == {
            "type": "action:end",
            "id": "c1",
            "error": "boom",
        }

    def test_tool_calls_event(self):
        assistant = Message.assistant(None, (ToolCall(id="c1", name="pick_file"),))
        event = ToolCallsEvent(tool_calls=[ToolCall(id="c1", name="pick_file")], assistant_message=assistant)
        data = event.to_dict()
        assert data["type"] == "tool_calls"
        assert data["toolCalls"] == [{"id": "c1", "name": "pick_file", "args": {}}]
        assert data["assistantMessage"]["role"] == "assistant"

    def test_event_from_dict(self):
        assert event_from_dict({"type": "message:delta", "content": "x"}) == MessageDeltaEvent(content="x")
        assert event_from_dict({"type": "error", "message": "boom", "code": "E"}) == ErrorEvent(
            message="boom", code="E"
        )
        done = event_from_dict({"type": "done", "messages": [{"role": "assistant", "content": "hi"}]})
        assert done == DoneEvent(messages=[Message.assistant("hi")])

        calls = event_from_dict(
            {
                "type": "tool_calls",
                "toolCalls": [{"id": "c1", "name": "pick_file", "args": {"a": 1}}],
                "assistantMessage": None,
            }
        )
        assert calls.tool_calls == [ToolCall(id="c1", name="pick_file", input={"a": 1})]

    def test_event_from_dict_unknown_type(self):
        with pytest.raises(ValueError):
            event_from_dict({"type": "nope"})
