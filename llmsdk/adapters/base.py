"""Base adapter for LLM provider integrations.

Adapters open the network call to one vendor and translate its native stream
into llmsdk stream events. They know nothing about the agent loop: each call
to ``stream`` is one model turn.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

from ..events import ErrorEvent, StreamEvent
from ..exceptions import ProviderError
from ..formatters import ProviderFormatter, get_formatter
from ..models import ToolCall

logger = logging.getLogger("llmsdk.adapters")


@dataclass
class AdapterConfig:
    """Configuration for provider adapters.

    Attributes:
        log_stream_chunks: Whether to log stream progress at debug level.
            Default False to reduce noise.
        chunk_log_interval: If log_stream_chunks is True, log every Nth chunk.
            Default 10.
        on_error: Optional callback for adapter errors. Signature:
            (error: Exception, context: dict) -> None
        on_stream_start: Optional callback invoked when a stream begins.
            Signature: (stream_id: str, model: str, provider: str) -> None
        on_token: Optional callback invoked for each content token during
            streaming. Signature: (token: str, stream_id: str) -> None
        on_stream_end: Optional callback invoked when a stream completes.
            Signature: (stream_id: str, content: str, chunks: int) -> None
        on_stream_error: Optional callback invoked when a stream fails.
            Signature: (error: Exception, stream_id: str) -> None
    """

    log_stream_chunks: bool = False
    chunk_log_interval: int = 10
    on_error: Optional[Callable[[Exception, dict[str, Any]], None]] = None
    on_stream_start: Optional[Callable[[str, str, str], None]] = None
    on_token: Optional[Callable[[str, str], None]] = None
    on_stream_end: Optional[Callable[[str, str, int], None]] = None
    on_stream_error: Optional[Callable[[Exception, str], None]] = None


@dataclass
class ChatCompletionRequest:
    """One model turn, already in the vendor's native shape.

    Attributes:
        messages: Vendor-native conversation.
        system: System instructions for vendors that take them separately.
        tools: Vendor-native tool declarations.
        model: Per-request model override.
        temperature: Per-request temperature override.
        max_tokens: Per-request output limit override.
        signal: Cancellation signal. Once set the adapter stops consuming
            backend output.
    """

    messages: list[dict[str, Any]] = field(default_factory=list)
    system: Optional[str] = None
    tools: list[dict[str, Any]] = field(default_factory=list)
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    signal: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self.signal is not None and self.signal.is_set()


@dataclass
class CompletionResult:
    """Result of a non-streaming completion."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: Optional[str] = None
    raw_response: Any = None
    thinking: Optional[str] = None
    usage: Optional[dict[str, Any]] = None


class BaseAdapter:
    """Base class for provider adapters.

    Subclasses implement ``stream`` and, optionally, ``complete``. This base
    class provides model resolution, hooks and error conversion.
    """

    provider: str = "base"
    default_model: str = ""
    error_code: str = "PROVIDER_ERROR"

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        config: Optional[AdapterConfig] = None,
    ):
        """Initialize the adapter.

        Args:
            model: Default model for requests that do not override it.
            temperature: Default sampling temperature.
            max_tokens: Default output limit.
            config: Optional adapter configuration. Uses defaults if not provided.
        """
        self._model = model or self.default_model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._config = config or AdapterConfig()

    @property
    def model(self) -> str:
        """The default model name."""
        return self._model

    @property
    def config(self) -> AdapterConfig:
        """The adapter configuration."""
        return self._config

    @property
    def formatter(self) -> ProviderFormatter:
        """The formatter for this adapter's vendor family."""
        return get_formatter(self.provider)

    @property
    def supports_complete(self) -> bool:
        return type(self).complete is not BaseAdapter.complete

    def stream(self, request: ChatCompletionRequest) -> AsyncIterator[StreamEvent]:
        """Stream one model turn as events.

        The sequence is ``message:start``, content and ``action:*`` events,
        ``message:end`` and ``done`` (carrying the assembled raw response), or
        a single ``error`` event on failure.
        """
        raise NotImplementedError

    async def complete(self, request: ChatCompletionRequest) -> CompletionResult:
        """Run one model turn without streaming.

        Raises:
            ProviderError: If the vendor call fails.
        """
        raise NotImplementedError

    def _resolve_model(self, request: ChatCompletionRequest) -> str:
        return request.model or self._model

    def _resolve_temperature(self, request: ChatCompletionRequest) -> Optional[float]:
        return request.temperature if request.temperature is not None else self._temperature

    def _resolve_max_tokens(self, request: ChatCompletionRequest) -> Optional[int]:
        return request.max_tokens if request.max_tokens is not None else self._max_tokens

    def _error_event(self, error: Exception, stream_id: str) -> ErrorEvent:
        logger.error("%s stream %s failed: %s", self.provider, stream_id, error)
        self._hook("on_error", error, {"phase": "stream", "stream_id": stream_id})
        self._hook("on_stream_error", error, stream_id)
        return ErrorEvent(message=str(error) or type(error).__name__, code=self.error_code)

    def _provider_error(self, error: Exception) -> ProviderError:
        self._hook("on_error", error, {"phase": "complete"})
        return ProviderError(
            str(error) or type(error).__name__,
            code=self.error_code,
            provider=self.provider,
            cause=error,
        )

    def _log_chunk(self, stream_id: str, chunk_count: int) -> None:
        if self._config.log_stream_chunks and chunk_count % self._config.chunk_log_interval == 0:
            logger.debug("%s stream %s received %d chunks", self.provider, stream_id, chunk_count)

    def _hook(self, name: str, *args: Any) -> None:
        """Call the ``AdapterConfig`` callback ``name`` if one is set.

        A failing callback is logged and never interrupts the stream.
        """
        callback = getattr(self._config, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.debug("%s hook failed", name, exc_info=True)

    def _generate_id(self) -> str:
        """Generate a unique ID for tracking."""
        return str(uuid.uuid4())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} provider={self.provider} model={self._model}>"


async def close_stream(stream: Any) -> None:
    """Close a vendor stream object if it exposes ``close`` or ``aclose``."""
    for name in ("aclose", "close"):
        closer = getattr(stream, name, None)
        if callable(closer):
            result = closer()
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                await result
            return
