"""Anthropic provider adapter.

Consumes the raw Messages API event stream (``message_start``,
``content_block_*``, ``message_delta``) from the ``anthropic`` SDK and
rebuilds the final message from it, including tool-use blocks whose input
arrives as JSON fragments.

Installation:
    pip install llmsdk

Example:
    from llmsdk.adapters import AnthropicAdapter

    adapter = AnthropicAdapter(model="claude-sonnet-4-20250514", thinking_budget=2048)
    async for event in adapter.stream(request):
        print(event.to_dict())
"""

import logging
import os
from typing import Any, AsyncIterator, Optional

from ..events import (
    ActionArgsEvent,
    ActionStartEvent,
    DoneEvent,
    MessageDeltaEvent,
    MessageEndEvent,
    MessageStartEvent,
    StreamEvent,
    ThinkingDeltaEvent,
    ThinkingEndEvent,
    ThinkingStartEvent,
)
from ..formatters.base import as_dict, new_tool_call_id
from .base import AdapterConfig, BaseAdapter, ChatCompletionRequest, CompletionResult, close_stream

logger = logging.getLogger("llmsdk.adapters.anthropic")

DEFAULT_MAX_TOKENS = 4096


def _check_anthropic_installed() -> None:
    """Check if the anthropic package is installed."""
    try:
        import anthropic  # noqa: F401
    except ImportError:
        raise ImportError(
            "AnthropicAdapter requires the 'anthropic' package. "
            "Install it with: pip install anthropic"
        ) from None


class AnthropicAdapter(BaseAdapter):
    """Adapter for the Anthropic Messages API.

    Supports extended thinking when ``thinking_budget`` is set; thinking
    output is surfaced as ``thinking:*`` events and never mixed into the
    assistant text.
    """

    provider = "anthropic"
    default_model = "claude-sonnet-4-20250514"
    error_code = "ANTHROPIC_ERROR"

    def __init__(
        self,
        client: Any = None,
        *,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        thinking_budget: Optional[int] = None,
        config: Optional[AdapterConfig] = None,
    ):
        """Initialize the Anthropic adapter.

        Args:
            client: An ``anthropic.AsyncAnthropic`` instance. Created lazily when omitted.
            model: Default model name.
            api_key: API key. Falls back to ``ANTHROPIC_API_KEY``.
            temperature: Default sampling temperature. Ignored when thinking is enabled.
            max_tokens: Default output limit. Anthropic requires one, 4096 if unset.
            thinking_budget: Token budget for extended thinking, disabled when None.
            config: Optional adapter configuration.
        """
        super().__init__(model=model, temperature=temperature, max_tokens=max_tokens, config=config)
        self._client = client
        self._api_key = api_key
        self._thinking_budget = thinking_budget

    def _get_client(self) -> Any:
        if self._client is None:
            _check_anthropic_installed()
            import anthropic

            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            )
        return self._client

    def _build_kwargs(self, request: ChatCompletionRequest, stream: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._resolve_model(request),
            "max_tokens": self._resolve_max_tokens(request) or DEFAULT_MAX_TOKENS,
            "messages": request.messages,
        }
        if request.system:
            kwargs["system"] = request.system
        if request.tools:
            kwargs["tools"] = request.tools
        if self._thinking_budget:
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": self._thinking_budget}
        else:
            temperature = self._resolve_temperature(request)
            if temperature is not None:
                kwargs["temperature"] = temperature
        if stream:
            kwargs["stream"] = True
        return kwargs

    async def stream(self, request: ChatCompletionRequest) -> AsyncIterator[StreamEvent]:
        stream_id = self._generate_id()
        model = self._resolve_model(request)
        self._hook("on_stream_start", stream_id, model, self.provider)

        try:
            stream = await self._get_client().messages.create(**self._build_kwargs(request, stream=True))
        except Exception as e:
            yield self._error_event(e, stream_id)
            return

        # index -> assembled content block
        blocks: dict[int, dict[str, Any]] = {}
        message_id: Optional[str] = None
        stop_reason: Optional[str] = None
        usage: dict[str, Any] = {}
        chunk_count = 0
        started = False

        try:
            async for event in stream:
                if request.cancelled:
                    logger.debug("Stream %s cancelled", stream_id)
                    return
                chunk_count += 1
                self._log_chunk(stream_id, chunk_count)
                event_type = getattr(event, "type", None)

                if event_type == "message_start":
                    message = getattr(event, "message", None)
                    message_id = getattr(message, "id", None)
                    input_tokens = getattr(getattr(message, "usage", None), "input_tokens", None)
                    if input_tokens is not None:
                        usage["input_tokens"] = input_tokens
                    started = True
                    yield MessageStartEvent(id=message_id or stream_id)

                elif event_type == "content_block_start":
                    if not started:
                        started = True
                        yield MessageStartEvent(id=stream_id)
                    block = getattr(event, "content_block", None)
                    block_type = getattr(block, "type", None)
                    if block_type == "tool_use":
                        entry = {
                            "type": "tool_use",
                            "id": getattr(block, "id", None) or new_tool_call_id("toolu"),
                            "name": getattr(block, "name", ""),
                            "fragments": [],
                        }
                        blocks[event.index] = entry
                        yield ActionStartEvent(id=entry["id"], name=entry["name"])
                    elif block_type == "thinking":
                        blocks[event.index] = {"type": "thinking", "thinking": "", "signature": ""}
                        yield ThinkingStartEvent()
                    else:
                        blocks[event.index] = {"type": "text", "text": getattr(block, "text", "") or ""}

                elif event_type == "content_block_delta":
                    entry = blocks.get(event.index)
                    delta = getattr(event, "delta", None)
                    delta_type = getattr(delta, "type", None)
                    if entry is None:
                        continue
                    if delta_type == "text_delta":
                        entry["text"] += delta.text
                        self._hook("on_token", delta.text, stream_id)
                        yield MessageDeltaEvent(content=delta.text)
                    elif delta_type == "input_json_delta":
                        entry["fragments"].append(delta.partial_json)
                    elif delta_type == "thinking_delta":
                        entry["thinking"] += delta.thinking
                        yield ThinkingDeltaEvent(content=delta.thinking)
                    elif delta_type == "signature_delta":
                        entry["signature"] += delta.signature

                elif event_type == "content_block_stop":
                    entry = blocks.get(event.index)
                    if entry is None:
                        continue
                    if entry["type"] == "tool_use":
                        yield ActionArgsEvent(id=entry["id"], args="".join(entry["fragments"]))
                    elif entry["type"] == "thinking":
                        yield ThinkingEndEvent()

                elif event_type == "message_delta":
                    delta = getattr(event, "delta", None)
                    if getattr(delta, "stop_reason", None):
                        stop_reason = delta.stop_reason
                    output_tokens = getattr(getattr(event, "usage", None), "output_tokens", None)
                    if output_tokens is not None:
                        usage["output_tokens"] = output_tokens
        except Exception as e:
            yield self._error_event(e, stream_id)
            return
        finally:
            await close_stream(stream)

        if not started:
            yield MessageStartEvent(id=stream_id)

        content: list[dict[str, Any]] = []
        for index in sorted(blocks):
            entry = blocks[index]
            if entry["type"] == "tool_use":
                content.append(
                    {
                        "type": "tool_use",
                        "id": entry["id"],
                        "name": entry["name"],
                        "input": "".join(entry["fragments"]),
                    }
                )
            else:
                content.append(entry)

        raw_response = {
            "id": message_id,
            "type": "message",
            "role": "assistant",
            "model": model,
            "content": content,
            "stop_reason": stop_reason,
            "usage": usage or None,
        }
        text = "".join(b["text"] for b in content if b["type"] == "text")

        yield MessageEndEvent()
        self._hook("on_stream_end", stream_id, text, chunk_count)
        yield DoneEvent(usage=usage or None, raw_response=raw_response)

    async def complete(self, request: ChatCompletionRequest) -> CompletionResult:
        try:
            response = await self._get_client().messages.create(**self._build_kwargs(request, stream=False))
        except Exception as e:
            raise self._provider_error(e) from e

        raw = as_dict(response)
        formatter = self.formatter
        thinking = formatter.extract_thinking(raw) if hasattr(formatter, "extract_thinking") else ""
        return CompletionResult(
            content=formatter.extract_text_content(raw),
            tool_calls=formatter.parse_tool_calls(raw),
            stop_reason=formatter.get_stop_reason(raw),
            raw_response=raw,
            thinking=thinking or None,
            usage=raw.get("usage"),
        )
