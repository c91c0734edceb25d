"""Tests for the tool registry, dispatcher and knowledge-base tool."""

import asyncio
import json

import pytest

from llmsdk.exceptions import ToolDefinitionError
from llmsdk.knowledge import KnowledgeBaseConfig, knowledge_base_tool
from llmsdk.models import AIResponseMode, ToolCall, ToolContext, ToolDefinition, ToolLocation
from llmsdk.tools import (
    ToolDispatcher,
    ToolDisposition,
    ToolRegistry,
    build_tool_result_content,
    define_tool,
)


def add_handler(input):
    return input["a"] + input["b"]


ADD_TOOL = ToolDefinition(
    name="add",
    description="Add two numbers.",
    input_schema={
        "type": "object",
        "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
        "required": ["a", "b"],
    },
    handler=add_handler,
)

PICK_FILE = ToolDefinition(name="pick_file", description="Let the user pick a file.", location=ToolLocation.CLIENT)


class TestDefineTool:
    def test_wraps_keyword_function(self):
        @define_tool(description="Multiply.", parameters={"type": "object", "properties": {"x": {"type": "number"}}})
        def multiply(x, y=2):
            return x * y

        assert isinstance(multiply, ToolDefinition)
        assert multiply.name == "multiply"
        assert multiply.location == ToolLocation.SERVER
        assert multiply.handler({"x": 3}) == 6

    def test_docstring_becomes_description(self):
        @define_tool()
        def ping():
            """Check that the service is alive."""
            return "pong"

        assert ping.description == "Check that the service is alive."
        assert ping.input_schema == {"type": "object", "properties": {}}

    @pytest.mark.asyncio
    async def test_context_is_passed_when_declared(self):
        seen = {}

        @define_tool(name="whoami")
        async def whoami(context=None):
            seen["context"] = context
            return context.thread_id

        dispatcher = ToolDispatcher(ToolRegistry([whoami]), thread_id="thread-9")
        result = await dispatcher.dispatch(ToolCall(id="c1", name="whoami"))

        assert result.success is True
        assert result.result == "thread-9"
        assert isinstance(seen["context"], ToolContext)
        assert seen["context"].tool_call_id == "c1"


class TestToolRegistry:
    def test_register_and_lookup(self):
        registry = ToolRegistry([ADD_TOOL, PICK_FILE])
        assert len(registry) == 2
        assert "add" in registry
        assert registry.get("pick_file") is PICK_FILE
        assert [t.name for t in registry.definitions()] == ["add", "pick_file"]

    def test_server_tool_without_handler_is_rejected(self):
        with pytest.raises(ToolDefinitionError) as exc_info:
            ToolRegistry([ToolDefinition(name="orphan")])
        assert exc_info.value.tool_name == "orphan"
        assert exc_info.value.code == "INVALID_TOOL"

    def test_defer_unhandled_accepts_handlerless_server_tool(self):
        registry = ToolRegistry([ToolDefinition(name="orphan")], defer_unhandled=True)
        dispatcher = ToolDispatcher(registry)
        assert dispatcher.disposition(ToolCall(id="c1", name="orphan")) == ToolDisposition.DEFER

    def test_empty_name_is_rejected(self):
        with pytest.raises(ToolDefinitionError):
            ToolRegistry([ToolDefinition(name="", handler=add_handler)])

    def test_unregister(self):
        registry = ToolRegistry([ADD_TOOL])
        assert registry.unregister("add") is True
        assert registry.unregister("add") is False
        assert len(registry) == 0

    def test_snapshot_is_isolated(self):
        registry = ToolRegistry([ADD_TOOL])
        snapshot = registry.snapshot([PICK_FILE])
        registry.unregister("add")

        assert "add" in snapshot
        assert "pick_file" in snapshot
        assert "pick_file" not in registry

    def test_snapshot_registered_tool_wins(self):
        registry = ToolRegistry([ADD_TOOL])
        impostor = ToolDefinition(name="add", location=ToolLocation.CLIENT)
        snapshot = registry.snapshot([impostor])
        assert snapshot.get("add") is ADD_TOOL


class TestToolDispatcher:
    def test_plan_splits_by_location(self):
        dispatcher = ToolDispatcher(ToolRegistry([ADD_TOOL, PICK_FILE]))
        calls = [
            ToolCall(id="c1", name="pick_file"),
            ToolCall(id="c2", name="add", input={"a": 1, "b": 2}),
            ToolCall(id="c3", name="nope"),
        ]
        plan = dispatcher.plan(calls)

        assert [c.id for c in plan.resolved] == ["c2", "c3"]
        assert [c.id for c in plan.deferred] == ["c1"]
        assert plan.requires_client is True
        assert dispatcher.disposition(calls[2]) == ToolDisposition.REJECT

    @pytest.mark.asyncio
    async def test_dispatch_success(self):
        dispatcher = ToolDispatcher(ToolRegistry([ADD_TOOL]))
        result = await dispatcher.dispatch(ToolCall(id="c1", name="add", input={"a": 2, "b": 2}))

        assert result.success is True
        assert result.tool_call_id == "c1"
        assert result.content == "4"
        assert result.result == 4
        assert result.name == "add"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        dispatcher = ToolDispatcher(ToolRegistry([ADD_TOOL]))
        result = await dispatcher.dispatch(ToolCall(id="c9", name="missing"))

        assert result.success is False
        assert result.error == "Unknown tool: missing"
        assert json.loads(result.content) == {"success": False, "error": "Unknown tool: missing"}

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failed_result(self):
        def explode(input):
            raise RuntimeError("disk full")

        dispatcher = ToolDispatcher(ToolRegistry([ToolDefinition(name="explode", handler=explode)]))
        result = await dispatcher.dispatch(ToolCall(id="c1", name="explode"))

        assert result.success is False
        assert result.error == "disk full"
        assert json.loads(result.content)["error"] == "disk full"

    @pytest.mark.asyncio
    async def test_client_tool_is_never_executed(self):
        dispatcher = ToolDispatcher(ToolRegistry([PICK_FILE]))
        result = await dispatcher.dispatch(ToolCall(id="c1", name="pick_file"))
        assert result.success is False
        assert "client" in result.error

    @pytest.mark.asyncio
    async def test_execute_all_keeps_request_order(self):
        async def slow(input):
            await asyncio.sleep(input["delay"])
            return input["tag"]

        dispatcher = ToolDispatcher(ToolRegistry([ToolDefinition(name="slow", handler=slow)]))
        calls = [
            ToolCall(id="c1", name="slow", input={"delay": 0.05, "tag": "first"}),
            ToolCall(id="c2", name="slow", input={"delay": 0.0, "tag": "second"}),
        ]
        results = await dispatcher.execute_all(calls)

        assert [r.tool_call_id for r in results] == ["c1", "c2"]
        assert [r.result for r in results] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_context_carries_signal_and_data(self):
        captured = {}

        def handler(input, context):
            captured["context"] = context
            return "ok"

        signal = asyncio.Event()
        dispatcher = ToolDispatcher(
            ToolRegistry([ToolDefinition(name="ctx", handler=handler)]),
            thread_id="t-1",
            headers={"x-user": "42"},
            context_data={"tenant": "acme"},
        )
        await dispatcher.dispatch(ToolCall(id="c1", name="ctx"), signal)

        context = captured["context"]
        assert context.signal is signal
        assert context.thread_id == "t-1"
        assert context.headers == {"x-user": "42"}
        assert context.data == {"tenant": "acme"}


class TestToolResultContent:
    def test_full_mode_serializes_result(self):
        tool = ToolDefinition(name="lookup", handler=add_handler)
        assert build_tool_result_content(tool, {"temp": 22}, {}) == '{"temp": 22}'

    def test_full_mode_prefixes_context(self):
        tool = ToolDefinition(name="lookup", handler=add_handler, ai_context="Weather data:")
        assert build_tool_result_content(tool, {"temp": 22}, {}) == 'Weather data:\n\n{"temp": 22}'

    def test_brief_mode_uses_context(self):
        tool = ToolDefinition(
            name="save",
            handler=add_handler,
            ai_response_mode=AIResponseMode.BRIEF,
            ai_context=lambda result, input: f"Saved {input['name']}",
        )
        assert build_tool_result_content(tool, {"id": 1}, {"name": "report"}) == "Saved report"

    def test_none_mode_hides_result(self):
        tool = ToolDefinition(name="save", handler=add_handler, ai_response_mode=AIResponseMode.NONE)
        assert build_tool_result_content(tool, {"secret": 1}, {}) == "Tool save executed successfully."


class TestKnowledgeBaseTool:
    @pytest.mark.asyncio
    async def test_search_results(self):
        calls = []

        async def search(query, **params):
            calls.append((query, params))
            return [{"title": "Refunds", "text": "30 days"}]

        tool = knowledge_base_tool(KnowledgeBaseConfig(search=search), {"projectId": "p1"})
        assert tool.name == "search_knowledge_base"
        assert tool.input_schema["required"] == ["query"]

        result = await tool.handler({"query": "refund policy"})
        assert result == {
            "query": "refund policy",
            "results": [{"title": "Refunds", "text": "30 days"}],
            "count": 1,
        }
        assert calls == [("refund policy", {"projectId": "p1", "limit": 5})]

    @pytest.mark.asyncio
    async def test_missing_query_fails_through_dispatcher(self):
        tool = knowledge_base_tool(KnowledgeBaseConfig(search=lambda query, **params: []))
        dispatcher = ToolDispatcher(ToolRegistry([tool]))
        result = await dispatcher.dispatch(ToolCall(id="c1", name="search_knowledge_base", input={}))
        assert result.success is False
        assert result.error == "query is required"
