"""
llmsdk - HTTP client for an llmsdk chat server.

Provides both synchronous and asynchronous clients.
"""

import json
from typing import Any, AsyncIterator, Iterator, Optional, Union

import httpx

from .events import StreamEvent
from .exceptions import APIError, AuthenticationError
from .models import ChatRequest, ChatResponse
from .streaming import SSEParser, parse_sse_lines

RequestLike = Union[ChatRequest, dict[str, Any]]


def _payload(request: RequestLike, streaming: bool) -> dict[str, Any]:
    data = request.to_dict() if isinstance(request, ChatRequest) else dict(request)
    data["streaming"] = streaming
    return data


def _raise_for_status(status_code: int, body: bytes) -> None:
    if status_code < 400:
        return
    try:
        data = json.loads(body) if body else None
    except ValueError:
        data = None
    detail = data.get("detail") if isinstance(data, dict) else None
    message = f"Request failed with status {status_code}"
    if detail:
        message = f"{message}: {detail}"
    if status_code == 401:
        raise AuthenticationError(message, status_code=status_code, response=data)
    raise APIError(message, status_code=status_code, response=data)


class ChatClient:
    """
    Synchronous client for the chat endpoint.

    Example:
        ```python
        client = ChatClient("http://localhost:8000", api_key="dev-key")

        for event in client.stream({"messages": [{"role": "user", "content": "Hi"}]}):
            print(event.to_dict())

        response = client.send({"messages": [{"role": "user", "content": "Hi"}]})
        print(response.content)
        ```
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.BaseTransport] = None,
        path: str = "/api/chat",
    ):
        self.base_url = base_url.rstrip("/")
        self.path = path
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key
        self._client = httpx.Client(
            base_url=self.base_url, headers=headers, timeout=timeout, transport=transport
        )

    def stream(self, request: RequestLike) -> Iterator[StreamEvent]:
        """Post ``request`` and yield events until the ``[DONE]`` sentinel."""
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        with self._client.stream("POST", self.path, json=_payload(request, True), headers=headers) as response:
            if response.status_code >= 400:
                _raise_for_status(response.status_code, response.read())
            yield from parse_sse_lines(response.iter_lines())

    def send(self, request: RequestLike) -> ChatResponse:
        """Post ``request`` in batch mode and return the aggregate response."""
        response = self._client.post(self.path, json=_payload(request, False))
        if response.status_code >= 400 and response.status_code != 500:
            _raise_for_status(response.status_code, response.content)
        return ChatResponse.from_dict(response.json())

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ChatClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class AsyncChatClient:
    """Asynchronous client for the chat endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        path: str = "/api/chat",
    ):
        self.base_url = base_url.rstrip("/")
        self.path = path
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key
        self._client = httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def stream(self, request: RequestLike) -> AsyncIterator[StreamEvent]:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        async with self._client.stream(
            "POST", self.path, json=_payload(request, True), headers=headers
        ) as response:
            if response.status_code >= 400:
                _raise_for_status(response.status_code, await response.aread())
            parser = SSEParser()
            async for line in response.aiter_lines():
                event = parser.feed_line(line)
                if event is not None:
                    yield event
                if parser.done:
                    return
            event = parser.close()
            if event is not None:
                yield event

    async def send(self, request: RequestLike) -> ChatResponse:
        response = await self._client.post(self.path, json=_payload(request, False))
        if response.status_code >= 400 and response.status_code != 500:
            _raise_for_status(response.status_code, response.content)
        return ChatResponse.from_dict(response.json())

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncChatClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
