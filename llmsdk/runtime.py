"""
llmsdk - Agent loop and runtime.

The agent loop drives one chat request to completion: it calls the adapter,
asks the provider formatter whether the model wants tools, runs server tools
through the dispatcher, folds the results back into the conversation and
calls the model again. It stops when the model answers without tools, when a
client tool must run in the caller, when the iteration budget runs out, when
the cancellation signal is set, or on a transport error.

Usage::

    runtime = Runtime(RuntimeConfig(model="gpt-4o", tools=[get_weather]))

    async for event in runtime.process_chat_with_loop(request):
        print(event.to_dict())

    response = await runtime.complete(request)
"""

import asyncio
import dataclasses
import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Optional

from .adapters import BaseAdapter, ChatCompletionRequest, create_adapter
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
    ThinkingDeltaEvent,
    ThinkingEndEvent,
    ThinkingStartEvent,
    ToolCallsEvent,
)
from .exceptions import ConfigurationError, LLMSDKError
from .knowledge import KnowledgeBaseConfig, knowledge_base_tool
from .models import (
    ChatRequest,
    ChatResponse,
    Message,
    RequestConfig,
    ToolCall,
    ToolDefinition,
    ToolLocation,
)
from .tools import DispatchPlan, ToolDispatcher, ToolRegistry

logger = logging.getLogger("llmsdk.runtime")

DEFAULT_MAX_ITERATIONS = 20


class LoopState(str, Enum):
    """States of one agent loop invocation."""

    AWAITING_MODEL = "awaiting_model"
    MODEL_RESPONDED = "model_responded"
    TOOLS_REQUESTED = "tools_requested"
    EXECUTING_TOOLS = "executing_tools"
    CONTINUE = "continue"
    AWAITING_CLIENT = "awaiting_client"
    TERMINATED = "terminated"
    ERRORED = "errored"


@dataclass
class AgentLoopConfig:
    """Agent loop settings.

    Attributes:
        max_iterations: Upper bound on model calls per request.
        enabled: When False, requests get a single model turn and every tool
            call is handed back to the caller.
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    enabled: bool = True


@dataclass
class RuntimeConfig:
    """Configuration for :class:`Runtime`.

    Either pass a ready ``adapter`` or let the runtime build one from
    ``provider``/``model``/``api_key``/``base_url``.
    """

    adapter: Optional[BaseAdapter] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    adapter_options: dict[str, Any] = field(default_factory=dict)
    system_prompt: Optional[str] = None
    tools: list[ToolDefinition] = field(default_factory=list)
    agent_loop: AgentLoopConfig = field(default_factory=AgentLoopConfig)
    knowledge_base: Optional[KnowledgeBaseConfig] = None
    tool_context: dict[str, Any] = field(default_factory=dict)
    defer_unhandled_tools: bool = False
    debug: bool = False


@dataclass
class _Turn:
    """What one model call produced."""

    raw_response: Any = None
    text_parts: list[str] = field(default_factory=list)
    tool_calls: Optional[list[ToolCall]] = None
    usage: Optional[dict[str, Any]] = None
    error: Optional[ErrorEvent] = None


# ---------------------------------------------------------------------------
# Agent loop
# ---------------------------------------------------------------------------


class AgentLoop:
    """One bounded model-call / tool-dispatch loop.

    The loop owns its conversation: the vendor-native history sent to the
    adapter and the canonical ``new_messages`` reported in the ``done``
    event. Both are discarded with the loop.
    """

    def __init__(
        self,
        adapter: BaseAdapter,
        messages: list[Message],
        registry: Any,
        *,
        system_prompt: Optional[str] = None,
        request_config: Optional[RequestConfig] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        streaming: bool = True,
        execute_tools: bool = True,
        signal: Optional[asyncio.Event] = None,
        thread_id: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        tool_context: Optional[dict[str, Any]] = None,
        debug: bool = False,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._adapter = adapter
        self._formatter = adapter.formatter
        self._messages = list(messages)
        self._registry = registry
        self._system_prompt = system_prompt
        self._request_config = request_config or RequestConfig()
        self._max_iterations = max_iterations
        self._streaming = streaming
        self._execute_tools = execute_tools
        self._debug = debug
        self._dispatcher = ToolDispatcher(
            registry,
            thread_id=thread_id,
            headers=headers,
            context_data=tool_context,
            debug=debug,
        )
        self.signal = signal or asyncio.Event()
        self.state = LoopState.AWAITING_MODEL
        self.iterations = 0
        self.new_messages: list[Message] = []

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def cancelled(self) -> bool:
        return self.signal.is_set()

    @property
    def _agent_mode(self) -> bool:
        return self._execute_tools and len(self._registry) > 0

    def cancel(self) -> None:
        self.signal.set()

    def _aborted_events(self) -> list[StreamEvent]:
        logger.info("Agent loop cancelled after %d iteration(s)", self.iterations)
        self.state = LoopState.TERMINATED
        return [
            LoopCompleteEvent(iterations=self.iterations, aborted=True),
            DoneEvent(messages=list(self.new_messages)),
        ]

    async def _model_events(self, request: ChatCompletionRequest, turn: _Turn) -> AsyncIterator[StreamEvent]:
        """Run one model call, recording its outcome in ``turn`` and yielding content events."""
        if not self._streaming and self._adapter.supports_complete:
            result = await self._adapter.complete(request)
            turn.raw_response = result.raw_response
            turn.tool_calls = list(result.tool_calls)
            turn.text_parts.append(result.content)
            turn.usage = result.usage

            yield MessageStartEvent(id=str(uuid.uuid4()))
            if result.thinking:
                yield ThinkingStartEvent()
                yield ThinkingDeltaEvent(content=result.thinking)
                yield ThinkingEndEvent()
            if result.content:
                yield MessageDeltaEvent(content=result.content)
            for call in result.tool_calls:
                yield ActionStartEvent(id=call.id, name=call.name)
                yield ActionArgsEvent(id=call.id, args=call.arguments_json)
            yield MessageEndEvent()
            return

        async with aclosing(self._adapter.stream(request)) as stream:
            async for event in stream:
                if isinstance(event, ErrorEvent):
                    turn.error = event
                    return
                if isinstance(event, DoneEvent):
                    turn.raw_response = event.raw_response
                    turn.usage = event.usage
                    continue
                if isinstance(event, MessageDeltaEvent):
                    turn.text_parts.append(event.content)
                yield event

    def _plan(self, tool_calls: list[ToolCall]) -> DispatchPlan:
        if not self._execute_tools:
            return DispatchPlan(deferred=list(tool_calls))
        return self._dispatcher.plan(tool_calls)

    async def run(self) -> AsyncIterator[StreamEvent]:
        """Run the loop, yielding stream events until a terminal state."""
        conversation = self._formatter.format_conversation(self._messages, self._system_prompt)
        definitions = self._registry.definitions()
        native_tools = self._formatter.transform_tools(definitions) if definitions else []
        agent_mode = self._agent_mode

        while self.iterations < self._max_iterations:
            if self.cancelled:
                for event in self._aborted_events():
                    yield event
                return

            self.iterations += 1
            self.state = LoopState.AWAITING_MODEL
            if self._debug:
                logger.debug(
                    "Iteration %d/%d with %d message(s)",
                    self.iterations,
                    self._max_iterations,
                    len(conversation.messages),
                )
            if agent_mode:
                yield LoopIterationEvent(iteration=self.iterations, max_iterations=self._max_iterations)

            request = ChatCompletionRequest(
                messages=list(conversation.messages),
                system=conversation.system,
                tools=native_tools,
                model=self._request_config.model,
                temperature=self._request_config.temperature,
                max_tokens=self._request_config.max_tokens,
                signal=self.signal,
            )
            turn = _Turn()
            try:
                async with aclosing(self._model_events(request, turn)) as events:
                    async for event in events:
                        if self.cancelled:
                            break
                        yield event
            except LLMSDKError as e:
                turn.error = ErrorEvent(message=e.message, code=e.code)
            except Exception as e:
                logger.exception("Model call failed")
                turn.error = ErrorEvent(message=str(e) or type(e).__name__, code="COMPLETION_ERROR")

            if self.cancelled:
                for event in self._aborted_events():
                    yield event
                return

            if turn.error is not None:
                self.state = LoopState.ERRORED
                yield turn.error
                return

            self.state = LoopState.MODEL_RESPONDED
            raw = turn.raw_response
            if turn.tool_calls is not None:
                tool_calls = turn.tool_calls
            else:
                tool_calls = self._formatter.parse_tool_calls(raw) if raw is not None else []
            text = self._formatter.extract_text_content(raw) if raw is not None else "".join(turn.text_parts)
            wants_tools = bool(tool_calls) and self._formatter.is_tool_use_stop(raw)

            if not wants_tools:
                if tool_calls:
                    logger.warning(
                        "Ignoring %d tool call(s) with stop reason %r",
                        len(tool_calls),
                        self._formatter.get_stop_reason(raw),
                    )
                self.state = LoopState.TERMINATED
                if text:
                    self.new_messages.append(Message.assistant(text))
                if agent_mode:
                    yield LoopCompleteEvent(iterations=self.iterations)
                yield DoneEvent(messages=list(self.new_messages), usage=turn.usage)
                return

            self.state = LoopState.TOOLS_REQUESTED
            plan = self._plan(tool_calls)
            if self._debug:
                logger.debug(
                    "Model requested %s; %d resolved here, %d deferred",
                    [call.name for call in tool_calls],
                    len(plan.resolved),
                    len(plan.deferred),
                )

            self.state = LoopState.EXECUTING_TOOLS
            results = await self._dispatcher.execute_all(plan.resolved, self.signal)
            for call, result in zip(plan.resolved, results):
                yield ActionEndEvent(
                    id=call.id,
                    name=call.name,
                    result=result.result if result.success else None,
                    error=result.error,
                )

            assistant = Message.assistant(text or None, tuple(tool_calls))
            self.new_messages.append(assistant)
            self.new_messages.extend(result.to_message() for result in results)
            conversation.messages.append(self._formatter.build_assistant_tool_message(tool_calls, text or None))
            conversation.messages.extend(self._formatter.build_tool_result_message(results))

            if plan.requires_client:
                self.state = LoopState.AWAITING_CLIENT
                yield ToolCallsEvent(tool_calls=list(plan.deferred), assistant_message=assistant)
                yield DoneEvent(messages=list(self.new_messages), requires_action=True, usage=turn.usage)
                return

            self.state = LoopState.CONTINUE

        logger.info("Agent loop reached max iterations (%d)", self._max_iterations)
        self.state = LoopState.TERMINATED
        yield LoopCompleteEvent(iterations=self.iterations, max_iterations_reached=True)
        yield DoneEvent(messages=list(self.new_messages))


async def collect_events(events: AsyncIterable[StreamEvent]) -> ChatResponse:
    """Fold an event sequence into one aggregate response.

    ``tool_calls`` holds the calls the caller still has to execute.
    """
    response = ChatResponse()
    content_parts: list[str] = []

    async for event in events:
        if isinstance(event, MessageDeltaEvent):
            content_parts.append(event.content)
        elif isinstance(event, ActionEndEvent):
            entry: dict[str, Any] = {
                "toolCallId": event.id,
                "name": event.name,
                "success": event.error is None,
            }
            if event.error is not None:
                entry["error"] = event.error
            else:
                entry["result"] = event.result
            response.tool_results.append(entry)
        elif isinstance(event, ToolCallsEvent):
            response.tool_calls = list(event.tool_calls)
        elif isinstance(event, ErrorEvent):
            response.success = False
            response.error = {"message": event.message, "code": event.code}
        elif isinstance(event, DoneEvent):
            if event.messages is not None:
                response.messages = list(event.messages)
            response.requires_action = event.requires_action

    response.content = "".join(content_parts)
    return response


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class Runtime:
    """Entry point that owns an adapter and a tool registry.

    Tools registered on the runtime are server tools; tools sent with a
    request are client tools.
    """

    def __init__(self, config: Optional[RuntimeConfig] = None, **kwargs: Any):
        self._config = config or RuntimeConfig(**kwargs)
        if self._config.agent_loop.max_iterations < 1:
            raise ConfigurationError(
                f"agent_loop.max_iterations must be at least 1, got {self._config.agent_loop.max_iterations}"
            )
        self._adapter = self._config.adapter or create_adapter(
            provider=self._config.provider,
            model=self._config.model,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            **self._config.adapter_options,
        )
        self._registry = ToolRegistry(
            self._config.tools, defer_unhandled=self._config.defer_unhandled_tools
        )
        if self._config.debug:
            logger.debug(
                "Runtime ready: provider=%s model=%s tools=%s",
                self.provider,
                self.get_model(),
                [t.name for t in self._registry.definitions()],
            )

    @property
    def config(self) -> RuntimeConfig:
        return self._config

    @property
    def adapter(self) -> BaseAdapter:
        return self._adapter

    @property
    def provider(self) -> str:
        return self._adapter.provider

    def get_model(self) -> str:
        return self._adapter.model

    def register_tool(self, tool: ToolDefinition) -> None:
        self._registry.register(tool)

    def unregister_tool(self, name: str) -> bool:
        return self._registry.unregister(name)

    def get_tools(self) -> list[ToolDefinition]:
        return self._registry.definitions()

    def _request_tools(self, request: ChatRequest) -> list[ToolDefinition]:
        tools = [
            t if t.handler is not None else dataclasses.replace(t, location=ToolLocation.CLIENT)
            for t in request.tools
        ]
        if request.knowledge_base is not None:
            if self._config.knowledge_base is None:
                logger.warning("Request asked for knowledge-base search but no search is configured")
            else:
                tools.append(knowledge_base_tool(self._config.knowledge_base, request.knowledge_base))
        return tools

    def create_loop(
        self,
        request: ChatRequest,
        signal: Optional[asyncio.Event] = None,
        headers: Optional[dict[str, str]] = None,
        use_loop: bool = True,
    ) -> AgentLoop:
        """Build the loop for one request. The registry is frozen here."""
        registry = self._registry.snapshot(self._request_tools(request))
        return AgentLoop(
            self._adapter,
            request.messages,
            registry,
            system_prompt=request.system_prompt or self._config.system_prompt,
            request_config=request.config,
            max_iterations=self._config.agent_loop.max_iterations if use_loop else 1,
            streaming=request.streaming,
            execute_tools=use_loop,
            signal=signal,
            thread_id=request.thread_id,
            headers=headers,
            tool_context=self._config.tool_context,
            debug=self._config.debug,
        )

    async def process_chat_with_loop(
        self,
        request: ChatRequest,
        signal: Optional[asyncio.Event] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run the full agent loop for ``request``."""
        loop = self.create_loop(request, signal=signal, headers=headers)
        async with aclosing(loop.run()) as events:
            async for event in events:
                yield event

    async def process_chat(
        self,
        request: ChatRequest,
        signal: Optional[asyncio.Event] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run a single model turn; every tool call goes back to the caller."""
        loop = self.create_loop(request, signal=signal, headers=headers, use_loop=False)
        async with aclosing(loop.run()) as events:
            async for event in events:
                yield event

    def stream(
        self,
        request: ChatRequest,
        signal: Optional[asyncio.Event] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> AsyncIterator[StreamEvent]:
        if self._config.agent_loop.enabled:
            return self.process_chat_with_loop(request, signal=signal, headers=headers)
        return self.process_chat(request, signal=signal, headers=headers)

    async def complete(
        self,
        request: ChatRequest,
        signal: Optional[asyncio.Event] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> ChatResponse:
        """Run ``request`` in batch mode and fold its events into one response."""
        batch = dataclasses.replace(request, streaming=False)
        return await collect_events(self.stream(batch, signal=signal, headers=headers))
