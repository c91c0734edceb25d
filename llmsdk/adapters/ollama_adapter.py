"""Ollama provider adapter.

Talks to a local Ollama server over HTTP (``/api/chat``, newline-delimited
JSON). Requests arrive in OpenAI shape and are adjusted for Ollama: tool-call
arguments are sent as objects and images travel in the ``images`` field.
"""

import json
import logging
import os
from typing import Any, AsyncIterator, Optional

import httpx

from ..events import (
    ActionArgsEvent,
    ActionStartEvent,
    DoneEvent,
    MessageDeltaEvent,
    MessageEndEvent,
    MessageStartEvent,
    StreamEvent,
)
from ..formatters.base import new_tool_call_id
from ..models import parse_tool_arguments
from .base import AdapterConfig, BaseAdapter, ChatCompletionRequest, CompletionResult

logger = logging.getLogger("llmsdk.adapters.ollama")

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_TIMEOUT = 120.0


class OllamaAdapter(BaseAdapter):
    """Adapter for models served by Ollama."""

    provider = "ollama"
    default_model = "llama3.1"
    error_code = "OLLAMA_ERROR"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        options: Optional[dict[str, Any]] = None,
        config: Optional[AdapterConfig] = None,
    ):
        """Initialize the Ollama adapter.

        Args:
            http_client: Shared ``httpx.AsyncClient``. A client is created per
                request when omitted.
            model: Default model name.
            base_url: Ollama server URL. Falls back to ``OLLAMA_BASE_URL``.
            timeout: Request timeout in seconds.
            temperature: Default sampling temperature.
            max_tokens: Default output limit (``num_predict``).
            options: Extra Ollama model options.
            config: Optional adapter configuration.
        """
        super().__init__(model=model, temperature=temperature, max_tokens=max_tokens, config=config)
        self._http_client = http_client
        self._base_url = (base_url or os.environ.get("OLLAMA_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout
        self._options = options or {}

    @property
    def base_url(self) -> str:
        return self._base_url

    def _convert_message(self, message: dict[str, Any]) -> dict[str, Any]:
        converted: dict[str, Any] = {"role": message.get("role", "user")}
        content = message.get("content")

        if isinstance(content, list):
            texts: list[str] = []
            images: list[str] = []
            for block in content:
                if block.get("type") == "text":
                    texts.append(block.get("text", ""))
                elif block.get("type") == "image_url":
                    url = (block.get("image_url") or {}).get("url", "")
                    if url.startswith("data:") and "," in url:
                        images.append(url.split(",", 1)[1])
                    else:
                        logger.debug("Skipping non-inline image for Ollama")
            converted["content"] = "\n".join(texts)
            if images:
                converted["images"] = images
        else:
            converted["content"] = content or ""

        if message.get("tool_calls"):
            converted["tool_calls"] = [
                {
                    "function": {
                        "name": call["function"]["name"],
                        "arguments": parse_tool_arguments(call["function"].get("arguments")),
                    }
                }
                for call in message["tool_calls"]
            ]
        return converted

    def _build_payload(self, request: ChatCompletionRequest, stream: bool) -> dict[str, Any]:
        messages = [self._convert_message(m) for m in request.messages]
        if request.system and not any(m["role"] == "system" for m in messages):
            messages.insert(0, {"role": "system", "content": request.system})

        options = dict(self._options)
        temperature = self._resolve_temperature(request)
        if temperature is not None:
            options["temperature"] = temperature
        max_tokens = self._resolve_max_tokens(request)
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        payload: dict[str, Any] = {
            "model": self._resolve_model(request),
            "messages": messages,
            "stream": stream,
        }
        if options:
            payload["options"] = options
        if request.tools:
            payload["tools"] = request.tools
        return payload

    def _client(self) -> tuple[httpx.AsyncClient, bool]:
        if self._http_client is not None:
            return self._http_client, False
        return httpx.AsyncClient(timeout=self._timeout), True

    @staticmethod
    def _tool_call(raw_call: dict[str, Any]) -> dict[str, Any]:
        function = raw_call.get("function") or {}
        arguments = function.get("arguments")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments or {})
        return {
            "id": raw_call.get("id") or new_tool_call_id(),
            "type": "function",
            "function": {"name": function.get("name", ""), "arguments": arguments},
        }

    @staticmethod
    def _raw_response(
        model: str, text: str, tool_calls: list[dict[str, Any]], done_reason: Optional[str], usage: Any
    ) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": text or None}
        if tool_calls:
            message["tool_calls"] = tool_calls
        # Ollama reports "stop" even when it returns tool calls
        finish_reason = "tool_calls" if tool_calls else (done_reason or "stop")
        return {
            "model": model,
            "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
            "usage": usage,
        }

    @staticmethod
    def _usage(data: dict[str, Any]) -> Optional[dict[str, Any]]:
        if "prompt_eval_count" not in data and "eval_count" not in data:
            return None
        return {
            "prompt_tokens": data.get("prompt_eval_count"),
            "completion_tokens": data.get("eval_count"),
        }

    async def stream(self, request: ChatCompletionRequest) -> AsyncIterator[StreamEvent]:
        stream_id = self._generate_id()
        model = self._resolve_model(request)
        url = f"{self._base_url}/api/chat"
        self._hook("on_stream_start", stream_id, model, self.provider)

        client, owned = self._client()
        text_parts: list[str] = []
        tool_calls: list[dict[str, Any]] = []
        done_reason: Optional[str] = None
        usage: Optional[dict[str, Any]] = None
        chunk_count = 0

        try:
            async with client.stream("POST", url, json=self._build_payload(request, stream=True)) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise httpx.HTTPStatusError(
                        f"Ollama returned HTTP {response.status_code}: {body[:500]}",
                        request=response.request,
                        response=response,
                    )

                yield MessageStartEvent(id=stream_id)
                async for line in response.aiter_lines():
                    if request.cancelled:
                        logger.debug("Stream %s cancelled", stream_id)
                        return
                    line = line.strip()
                    if not line:
                        continue
                    chunk_count += 1
                    self._log_chunk(stream_id, chunk_count)
                    data = json.loads(line)
                    if data.get("error"):
                        raise RuntimeError(str(data["error"]))

                    message = data.get("message") or {}
                    content = message.get("content")
                    if content:
                        text_parts.append(content)
                        self._hook("on_token", content, stream_id)
                        yield MessageDeltaEvent(content=content)

                    for raw_call in message.get("tool_calls") or []:
                        call = self._tool_call(raw_call)
                        tool_calls.append(call)
                        yield ActionStartEvent(id=call["id"], name=call["function"]["name"])
                        yield ActionArgsEvent(id=call["id"], args=call["function"]["arguments"])

                    if data.get("done"):
                        done_reason = data.get("done_reason")
                        usage = self._usage(data)
                        break
        except Exception as e:
            yield self._error_event(e, stream_id)
            return
        finally:
            if owned:
                await client.aclose()

        text = "".join(text_parts)
        yield MessageEndEvent()
        self._hook("on_stream_end", stream_id, text, chunk_count)
        yield DoneEvent(
            usage=usage,
            raw_response=self._raw_response(model, text, tool_calls, done_reason, usage),
        )

    async def complete(self, request: ChatCompletionRequest) -> CompletionResult:
        model = self._resolve_model(request)
        client, owned = self._client()
        try:
            response = await client.post(
                f"{self._base_url}/api/chat", json=self._build_payload(request, stream=False)
            )
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            raise self._provider_error(e) from e
        finally:
            if owned:
                await client.aclose()

        message = data.get("message") or {}
        tool_calls = [self._tool_call(c) for c in message.get("tool_calls") or []]
        usage = self._usage(data)
        raw = self._raw_response(model, message.get("content") or "", tool_calls, data.get("done_reason"), usage)
        formatter = self.formatter
        return CompletionResult(
            content=formatter.extract_text_content(raw),
            tool_calls=formatter.parse_tool_calls(raw),
            stop_reason=formatter.get_stop_reason(raw),
            raw_response=raw,
            usage=usage,
        )
