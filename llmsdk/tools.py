"""
llmsdk - Tool registry and dispatcher.

Server tools run here and nowhere else: ``ToolDispatcher.dispatch`` is the
single place where a model-requested call reaches integrator code.

Usage::

    @define_tool(description="Fetch current weather.", parameters={
        "type": "object",
        "properties": {"city": {"type": "string"}},
        "required": ["city"],
    })
    async def get_weather(city: str) -> dict:
        return {"temperature": 22, "unit": "C"}

    registry = ToolRegistry([get_weather])
    dispatcher = ToolDispatcher(registry)
    result = await dispatcher.dispatch(ToolCall(id="call_1", name="get_weather", input={"city": "Paris"}))
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional

from .exceptions import ToolDefinitionError
from .models import AIResponseMode, ToolCall, ToolContext, ToolDefinition, ToolLocation, ToolResult

logger = logging.getLogger("llmsdk.tools")


# ---------------------------------------------------------------------------
# Tool definition helpers
# ---------------------------------------------------------------------------


def _accepts_context(func: Callable[..., Any]) -> bool:
    try:
        params = inspect.signature(func, follow_wrapped=False).parameters
    except (TypeError, ValueError):
        return False
    return "context" in params or any(p.kind == inspect.Parameter.VAR_KEYWORD for p in params.values())


def define_tool(
    name: Optional[str] = None,
    description: str = "",
    parameters: Optional[dict] = None,
    ai_response_mode: AIResponseMode = AIResponseMode.FULL,
    ai_context: Any = None,
) -> Callable[[Callable[..., Any]], ToolDefinition]:
    """Decorator that turns a function into a server :class:`ToolDefinition`.

    The model's arguments are passed as keyword arguments. A function that
    declares a ``context`` parameter also receives the :class:`ToolContext`.
    """

    def decorator(func: Callable[..., Any]) -> ToolDefinition:
        tool_name = name or func.__name__
        wants_context = "context" in inspect.signature(func).parameters

        def handler(input: dict[str, Any], context: Optional[ToolContext] = None) -> Any:
            if wants_context:
                return func(**input, context=context)
            return func(**input)

        handler.__name__ = tool_name
        return ToolDefinition(
            name=tool_name,
            description=description or inspect.getdoc(func) or f"Tool: {tool_name}",
            input_schema=parameters or {"type": "object", "properties": {}},
            location=ToolLocation.SERVER,
            handler=handler,
            ai_response_mode=ai_response_mode,
            ai_context=ai_context,
        )

    return decorator


def serialize_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def build_tool_result_content(tool: ToolDefinition, result: Any, input: dict[str, Any]) -> str:
    """Build the tool-result text the model will see for a successful call."""
    mode = AIResponseMode(tool.ai_response_mode)
    if mode == AIResponseMode.NONE:
        return f"Tool {tool.name} executed successfully."

    context = tool.ai_context
    if callable(context):
        context = context(result, input)
    if mode == AIResponseMode.BRIEF:
        return context or f"Tool {tool.name} executed successfully."

    payload = serialize_result(result)
    if context:
        return f"{context}\n\n{payload}"
    return payload


def failure_content(error: str) -> str:
    return json.dumps({"success": False, "error": error})


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Holds tool definitions by name.

    Server tools must carry a handler. A registry created with
    ``defer_unhandled=True`` accepts handler-less server tools and defers
    their calls to the caller instead.
    """

    def __init__(
        self,
        tools: Optional[Iterable[ToolDefinition]] = None,
        defer_unhandled: bool = False,
    ):
        self.defer_unhandled = defer_unhandled
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def _validate(self, tool: ToolDefinition) -> None:
        if not tool.name:
            raise ToolDefinitionError("Tool name must not be empty")
        if not isinstance(tool.location, ToolLocation):
            raise ToolDefinitionError(
                f"Tool {tool.name} has invalid location {tool.location!r}", tool_name=tool.name
            )
        if tool.is_server and tool.handler is None and not self.defer_unhandled:
            raise ToolDefinitionError(
                f"Server tool {tool.name} has no handler", tool_name=tool.name
            )

    def register(self, tool: ToolDefinition) -> None:
        """Add or replace a tool.

        Raises:
            ToolDefinitionError: If the definition is invalid.
        """
        self._validate(tool)
        if tool.name in self._tools:
            logger.debug("Replacing tool %s", tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def snapshot(self, extra_tools: Optional[Iterable[ToolDefinition]] = None) -> "FrozenToolRegistry":
        """Freeze the current tools plus ``extra_tools`` for one loop invocation.

        Registered tools win on name collisions.
        """
        tools = dict(self._tools)
        for tool in extra_tools or []:
            if tool.name in tools:
                logger.warning("Ignoring request tool %s, a registered tool has the same name", tool.name)
                continue
            self._validate(tool)
            tools[tool.name] = tool
        return FrozenToolRegistry(tools, defer_unhandled=self.defer_unhandled)


class FrozenToolRegistry:
    """Read-only view of the tools available to one loop invocation."""

    def __init__(self, tools: Mapping[str, ToolDefinition], defer_unhandled: bool = False):
        self._tools = MappingProxyType(dict(tools))
        self.defer_unhandled = defer_unhandled

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class ToolDisposition(str, Enum):
    """What the dispatcher does with a tool call."""

    EXECUTE = "execute"
    DEFER = "defer"
    REJECT = "reject"


@dataclass
class DispatchPlan:
    """Tool calls from one model turn, split by who resolves them.

    ``resolved`` holds calls answered in this process (server executions and
    rejected unknown tools); ``deferred`` holds calls for the caller. Both
    keep request order.
    """

    resolved: list[ToolCall] = field(default_factory=list)
    deferred: list[ToolCall] = field(default_factory=list)

    @property
    def requires_client(self) -> bool:
        return bool(self.deferred)


class ToolDispatcher:
    """Decides the fate of each tool call and runs server handlers."""

    def __init__(
        self,
        registry: Any,
        thread_id: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        context_data: Optional[dict[str, Any]] = None,
        debug: bool = False,
    ):
        self._registry = registry
        self._thread_id = thread_id
        self._headers = headers or {}
        self._context_data = context_data or {}
        self._debug = debug

    def disposition(self, call: ToolCall) -> ToolDisposition:
        tool = self._registry.get(call.name)
        if tool is None:
            return ToolDisposition.REJECT
        if tool.location == ToolLocation.CLIENT:
            return ToolDisposition.DEFER
        if tool.handler is None:
            return ToolDisposition.DEFER
        return ToolDisposition.EXECUTE

    def plan(self, calls: list[ToolCall]) -> DispatchPlan:
        plan = DispatchPlan()
        for call in calls:
            if self.disposition(call) == ToolDisposition.DEFER:
                plan.deferred.append(call)
            else:
                plan.resolved.append(call)
        return plan

    def _context(self, call: ToolCall, signal: Optional[asyncio.Event]) -> ToolContext:
        return ToolContext(
            tool_call_id=call.id,
            signal=signal,
            thread_id=self._thread_id,
            headers=dict(self._headers),
            data=dict(self._context_data),
        )

    async def dispatch(self, call: ToolCall, signal: Optional[asyncio.Event] = None) -> ToolResult:
        """Resolve one tool call. Never raises for tool-level failures."""
        tool = self._registry.get(call.name)
        if tool is None:
            error = f"Unknown tool: {call.name}"
            logger.warning("%s (call %s)", error, call.id)
            return ToolResult(
                tool_call_id=call.id,
                content=failure_content(error),
                success=False,
                error=error,
                name=call.name,
            )

        if tool.location == ToolLocation.CLIENT or tool.handler is None:
            error = f"Tool {call.name} must be executed by the client"
            return ToolResult(
                tool_call_id=call.id,
                content=failure_content(error),
                success=False,
                error=error,
                name=call.name,
            )

        if self._debug:
            logger.debug("Executing tool %s (call %s) with %s", call.name, call.id, call.input)

        try:
            if _accepts_context(tool.handler):
                result = tool.handler(call.input, context=self._context(call, signal))
            else:
                result = tool.handler(call.input)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.warning("Tool %s failed: %s", call.name, e)
            return ToolResult(
                tool_call_id=call.id,
                content=failure_content(str(e)),
                success=False,
                error=str(e),
                name=call.name,
            )

        try:
            content = build_tool_result_content(tool, result, call.input)
        except Exception as e:
            logger.warning("Could not serialize result of tool %s: %s", call.name, e)
            return ToolResult(
                tool_call_id=call.id,
                content=failure_content(str(e)),
                success=False,
                error=str(e),
                name=call.name,
            )

        return ToolResult(
            tool_call_id=call.id,
            content=content,
            success=True,
            name=call.name,
            result=result,
        )

    async def execute_all(
        self, calls: list[ToolCall], signal: Optional[asyncio.Event] = None
    ) -> list[ToolResult]:
        """Dispatch calls concurrently. Results keep the order of ``calls``."""
        if not calls:
            return []
        return list(await asyncio.gather(*(self.dispatch(call, signal) for call in calls)))
