"""Google Gemini provider adapter.

Uses ``google-generativeai`` with ``generate_content_async``. Gemini sends
function calls whole rather than as fragments and does not issue call IDs,
so IDs are synthesized here and stripped again before history goes back to
the SDK.

Installation:
    pip install llmsdk

Example:
    from llmsdk.adapters import GeminiAdapter

    adapter = GeminiAdapter(model="gemini-1.5-pro")
    async for event in adapter.stream(request):
        print(event.to_dict())
"""

import json
import logging
import os
from collections.abc import Mapping, Sequence
from typing import Any, AsyncIterator, Callable, Optional

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
from .base import AdapterConfig, BaseAdapter, ChatCompletionRequest, CompletionResult, close_stream

logger = logging.getLogger("llmsdk.adapters.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]


def _check_gemini_installed() -> None:
    """Check if the google-generativeai package is installed."""
    try:
        import google.generativeai  # noqa: F401
    except ImportError:
        raise ImportError(
            "GeminiAdapter requires the 'google-generativeai' package. "
            "Install it with: pip install google-generativeai"
        ) from None


def to_plain(value: Any) -> Any:
    """Convert proto map/repeated composites into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, Sequence):
        return [to_plain(item) for item in value]
    return value


def response_to_dict(response: Any) -> dict[str, Any]:
    """Flatten a Gemini response or stream chunk into the formatter's dict shape."""
    candidates = []
    for candidate in getattr(response, "candidates", None) or []:
        parts: list[dict[str, Any]] = []
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            function_call = getattr(part, "function_call", None)
            if function_call is not None and getattr(function_call, "name", ""):
                parts.append(
                    {
                        "function_call": {
                            "name": function_call.name,
                            "args": to_plain(getattr(function_call, "args", None) or {}),
                        }
                    }
                )
                continue
            text = getattr(part, "text", "")
            if text:
                parts.append({"text": text})

        reason = getattr(candidate, "finish_reason", None)
        candidates.append(
            {
                "content": {"role": "model", "parts": parts},
                "finish_reason": getattr(reason, "name", reason) if reason else None,
            }
        )

    result: dict[str, Any] = {"candidates": candidates}
    usage = getattr(response, "usage_metadata", None)
    if usage is not None:
        result["usage_metadata"] = {
            "prompt_token_count": getattr(usage, "prompt_token_count", None),
            "candidates_token_count": getattr(usage, "candidates_token_count", None),
            "total_token_count": getattr(usage, "total_token_count", None),
        }
    return result


def strip_call_ids(contents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Remove synthesized IDs from function_call/function_response parts."""
    stripped = []
    for turn in contents:
        parts = []
        for part in turn.get("parts", []):
            for key in ("function_call", "function_response"):
                if key in part:
                    part = {key: {k: v for k, v in part[key].items() if k != "id"}}
            parts.append(part)
        stripped.append({**turn, "parts": parts})
    return stripped


class GeminiAdapter(BaseAdapter):
    """Adapter for Google Gemini models."""

    provider = "google"
    default_model = "gemini-1.5-flash"
    error_code = "GOOGLE_ERROR"

    def __init__(
        self,
        model_factory: Optional[Callable[..., Any]] = None,
        *,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        safety_settings: Optional[list[dict[str, str]]] = None,
        config: Optional[AdapterConfig] = None,
    ):
        """Initialize the Gemini adapter.

        Args:
            model_factory: Callable ``(model_name, system_instruction)`` returning
                a ``GenerativeModel``-like object. Defaults to
                ``google.generativeai.GenerativeModel``.
            model: Default model name.
            api_key: API key. Falls back to ``GOOGLE_API_KEY`` or ``GEMINI_API_KEY``.
            temperature: Default sampling temperature.
            max_tokens: Default output limit.
            safety_settings: Safety settings passed with every request.
            config: Optional adapter configuration.
        """
        super().__init__(model=model, temperature=temperature, max_tokens=max_tokens, config=config)
        self._model_factory = model_factory
        self._api_key = api_key or os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY")
        self._safety_settings = safety_settings if safety_settings is not None else DEFAULT_SAFETY_SETTINGS

    def _get_model(self, model_name: str, system_instruction: Optional[str]) -> Any:
        if self._model_factory is not None:
            return self._model_factory(model_name, system_instruction)
        _check_gemini_installed()
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(model_name, system_instruction=system_instruction or None)

    def _request_kwargs(self, request: ChatCompletionRequest) -> dict[str, Any]:
        generation_config: dict[str, Any] = {}
        temperature = self._resolve_temperature(request)
        if temperature is not None:
            generation_config["temperature"] = temperature
        max_tokens = self._resolve_max_tokens(request)
        if max_tokens is not None:
            generation_config["max_output_tokens"] = max_tokens

        kwargs: dict[str, Any] = {"safety_settings": self._safety_settings}
        if generation_config:
            kwargs["generation_config"] = generation_config
        if request.tools:
            kwargs["tools"] = request.tools
        return kwargs

    async def stream(self, request: ChatCompletionRequest) -> AsyncIterator[StreamEvent]:
        stream_id = self._generate_id()
        model_name = self._resolve_model(request)
        self._hook("on_stream_start", stream_id, model_name, self.provider)

        try:
            model = self._get_model(model_name, request.system)
            response = await model.generate_content_async(
                strip_call_ids(request.messages), stream=True, **self._request_kwargs(request)
            )
        except Exception as e:
            yield self._error_event(e, stream_id)
            return

        text_parts: list[str] = []
        call_parts: list[dict[str, Any]] = []
        finish_reason: Optional[str] = None
        usage: Optional[dict[str, Any]] = None
        chunk_count = 0

        yield MessageStartEvent(id=stream_id)
        try:
            async for chunk in response:
                if request.cancelled:
                    logger.debug("Stream %s cancelled", stream_id)
                    return
                chunk_count += 1
                self._log_chunk(stream_id, chunk_count)
                data = response_to_dict(chunk)
                usage = data.get("usage_metadata") or usage
                if not data["candidates"]:
                    continue
                candidate = data["candidates"][0]

                for part in candidate["content"]["parts"]:
                    if "function_call" in part:
                        call = dict(part["function_call"])
                        call["id"] = new_tool_call_id()
                        call_parts.append({"function_call": call})
                        yield ActionStartEvent(id=call["id"], name=call["name"])
                        yield ActionArgsEvent(id=call["id"], args=json.dumps(call.get("args") or {}))
                    elif part.get("text"):
                        text_parts.append(part["text"])
                        self._hook("on_token", part["text"], stream_id)
                        yield MessageDeltaEvent(content=part["text"])

                if candidate.get("finish_reason"):
                    finish_reason = candidate["finish_reason"]
        except Exception as e:
            yield self._error_event(e, stream_id)
            return
        finally:
            await close_stream(response)

        text = "".join(text_parts)
        parts: list[dict[str, Any]] = [{"text": text}] if text else []
        parts.extend(call_parts)
        raw_response = {
            "candidates": [{"content": {"role": "model", "parts": parts}, "finish_reason": finish_reason}],
            "usage_metadata": usage,
        }

        yield MessageEndEvent()
        self._hook("on_stream_end", stream_id, text, chunk_count)
        yield DoneEvent(usage=usage, raw_response=raw_response)

    async def complete(self, request: ChatCompletionRequest) -> CompletionResult:
        try:
            model = self._get_model(self._resolve_model(request), request.system)
            response = await model.generate_content_async(
                strip_call_ids(request.messages), **self._request_kwargs(request)
            )
        except Exception as e:
            raise self._provider_error(e) from e

        raw = response_to_dict(response)
        formatter = self.formatter
        return CompletionResult(
            content=formatter.extract_text_content(raw),
            tool_calls=formatter.parse_tool_calls(raw),
            stop_reason=formatter.get_stop_reason(raw),
            raw_response=raw,
            usage=raw.get("usage_metadata"),
        )
