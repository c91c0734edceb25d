"""OpenAI provider adapter.

Streams chat completions through the ``openai`` SDK. The same adapter serves
OpenAI-compatible hosts (xAI, OpenRouter, DeepSeek, Groq) by pointing
``base_url`` at them, and ``AzureOpenAIAdapter`` covers Azure deployments.

Installation:
    pip install llmsdk

Example:
    from llmsdk.adapters import OpenAIAdapter

    adapter = OpenAIAdapter(model="gpt-4o")
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
)
from ..formatters import new_tool_call_id
from ..formatters.base import as_dict
from .base import AdapterConfig, BaseAdapter, ChatCompletionRequest, CompletionResult, close_stream

logger = logging.getLogger("llmsdk.adapters.openai")


def _check_openai_installed() -> None:
    """Check if the openai package is installed."""
    try:
        import openai  # noqa: F401
    except ImportError:
        raise ImportError(
            "OpenAIAdapter requires the 'openai' package. Install it with: pip install openai"
        ) from None


def _usage_dict(usage: Any) -> Optional[dict[str, Any]]:
    if usage is None:
        return None
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", None),
        "completion_tokens": getattr(usage, "completion_tokens", None),
        "total_tokens": getattr(usage, "total_tokens", None),
    }


class OpenAIAdapter(BaseAdapter):
    """Adapter for OpenAI and OpenAI-compatible chat completion endpoints."""

    provider = "openai"
    default_model = "gpt-4o"
    error_code = "OPENAI_ERROR"

    def __init__(
        self,
        client: Any = None,
        *,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        provider: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        config: Optional[AdapterConfig] = None,
        client_options: Optional[dict[str, Any]] = None,
    ):
        """Initialize the OpenAI adapter.

        Args:
            client: An ``openai.AsyncOpenAI`` instance. Created lazily when omitted.
            model: Default model name.
            api_key: API key. Falls back to ``OPENAI_API_KEY``.
            base_url: Endpoint for OpenAI-compatible hosts.
            provider: Provider identifier when serving a compatible host.
            temperature: Default sampling temperature.
            max_tokens: Default output limit.
            config: Optional adapter configuration.
            client_options: Extra keyword arguments for the SDK client.
        """
        super().__init__(model=model, temperature=temperature, max_tokens=max_tokens, config=config)
        if provider:
            self.provider = provider
        self._client = client
        self._api_key = api_key
        self._base_url = base_url
        self._client_options = client_options or {}

    def _get_client(self) -> Any:
        if self._client is None:
            _check_openai_installed()
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self._api_key or os.environ.get("OPENAI_API_KEY"),
                base_url=self._base_url,
                **self._client_options,
            )
        return self._client

    def _build_kwargs(self, request: ChatCompletionRequest, stream: bool) -> dict[str, Any]:
        messages = list(request.messages)
        if request.system and not any(m.get("role") == "system" for m in messages):
            messages.insert(0, {"role": "system", "content": request.system})

        kwargs: dict[str, Any] = {"model": self._resolve_model(request), "messages": messages}
        if request.tools:
            kwargs["tools"] = request.tools
        temperature = self._resolve_temperature(request)
        if temperature is not None:
            kwargs["temperature"] = temperature
        max_tokens = self._resolve_max_tokens(request)
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if stream:
            kwargs["stream"] = True
        return kwargs

    async def stream(self, request: ChatCompletionRequest) -> AsyncIterator[StreamEvent]:
        stream_id = self._generate_id()
        model = self._resolve_model(request)
        self._hook("on_stream_start", stream_id, model, self.provider)

        try:
            stream = await self._get_client().chat.completions.create(**self._build_kwargs(request, stream=True))
        except Exception as e:
            yield self._error_event(e, stream_id)
            return

        text_parts: list[str] = []
        # index -> {"id", "name", "fragments", "started"}
        pending_calls: dict[int, dict[str, Any]] = {}
        finish_reason: Optional[str] = None
        usage: Optional[dict[str, Any]] = None
        response_id: Optional[str] = None
        chunk_count = 0

        yield MessageStartEvent(id=stream_id)
        try:
            async for chunk in stream:
                if request.cancelled:
                    logger.debug("Stream %s cancelled", stream_id)
                    return
                chunk_count += 1
                self._log_chunk(stream_id, chunk_count)
                response_id = response_id or getattr(chunk, "id", None)
                if getattr(chunk, "usage", None) is not None:
                    usage = _usage_dict(chunk.usage)

                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                choice = choices[0]
                delta = getattr(choice, "delta", None)

                content = getattr(delta, "content", None) if delta is not None else None
                if content:
                    text_parts.append(content)
                    self._hook("on_token", content, stream_id)
                    yield MessageDeltaEvent(content=content)

                for fragment in (getattr(delta, "tool_calls", None) or []) if delta is not None else []:
                    index = getattr(fragment, "index", None)
                    if index is None:
                        index = len(pending_calls)
                    entry = pending_calls.get(index)
                    if entry is None:
                        entry = {
                            "id": getattr(fragment, "id", None) or new_tool_call_id(),
                            "name": "",
                            "fragments": [],
                            "started": False,
                        }
                        pending_calls[index] = entry
                    function = getattr(fragment, "function", None)
                    if function is not None:
                        if getattr(function, "name", None) and not entry["name"]:
                            entry["name"] = function.name
                        if getattr(function, "arguments", None):
                            entry["fragments"].append(function.arguments)
                    if entry["name"] and not entry["started"]:
                        entry["started"] = True
                        yield ActionStartEvent(id=entry["id"], name=entry["name"])

                if getattr(choice, "finish_reason", None):
                    finish_reason = choice.finish_reason
        except Exception as e:
            yield self._error_event(e, stream_id)
            return
        finally:
            await close_stream(stream)

        tool_calls = []
        for index in sorted(pending_calls):
            entry = pending_calls[index]
            arguments = "".join(entry["fragments"])
            yield ActionArgsEvent(id=entry["id"], args=arguments)
            tool_calls.append(
                {
                    "id": entry["id"],
                    "type": "function",
                    "function": {"name": entry["name"], "arguments": arguments},
                }
            )

        text = "".join(text_parts)
        message: dict[str, Any] = {"role": "assistant", "content": text or None}
        if tool_calls:
            message["tool_calls"] = tool_calls
        raw_response = {
            "id": response_id,
            "object": "chat.completion",
            "model": model,
            "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
            "usage": usage,
        }

        yield MessageEndEvent()
        self._hook("on_stream_end", stream_id, text, chunk_count)
        yield DoneEvent(usage=usage, raw_response=raw_response)

    async def complete(self, request: ChatCompletionRequest) -> CompletionResult:
        try:
            response = await self._get_client().chat.completions.create(**self._build_kwargs(request, stream=False))
        except Exception as e:
            raise self._provider_error(e) from e

        raw = as_dict(response)
        formatter = self.formatter
        return CompletionResult(
            content=formatter.extract_text_content(raw),
            tool_calls=formatter.parse_tool_calls(raw),
            stop_reason=formatter.get_stop_reason(raw),
            raw_response=raw,
            usage=raw.get("usage"),
        )


class AzureOpenAIAdapter(OpenAIAdapter):
    """Adapter for Azure OpenAI deployments.

    The deployment name is used as the model.
    """

    provider = "azure"
    error_code = "AZURE_ERROR"

    def __init__(
        self,
        client: Any = None,
        *,
        deployment: Optional[str] = None,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        api_version: str = "2024-08-01-preview",
        **kwargs: Any,
    ):
        deployment = deployment or kwargs.pop("model", None) or os.environ.get("AZURE_OPENAI_DEPLOYMENT")
        super().__init__(client, model=deployment, api_key=api_key, **kwargs)
        self._endpoint = endpoint or os.environ.get("AZURE_OPENAI_ENDPOINT")
        self._api_version = api_version

    def _get_client(self) -> Any:
        if self._client is None:
            _check_openai_installed()
            import openai

            self._client = openai.AsyncAzureOpenAI(
                api_key=self._api_key or os.environ.get("AZURE_OPENAI_API_KEY"),
                azure_endpoint=self._endpoint,
                api_version=self._api_version,
                **self._client_options,
            )
        return self._client
