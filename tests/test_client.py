"""Tests for the HTTP chat clients."""

import json

import httpx
import pytest

from llmsdk.client import AsyncChatClient, ChatClient
from llmsdk.events import DoneEvent, MessageDeltaEvent
from llmsdk.exceptions import APIError, AuthenticationError
from llmsdk.models import ChatRequest, Message

SSE_BODY = (
    'data: {"type": "message:start", "id": "m1"}\n\n'
    'data: {"type": "message:delta", "content": "Hi"}\n\n'
    'data: {"type": "message:end"}\n\n'
    'data: {"type": "done", "messages": [{"role": "assistant", "content": "Hi"}]}\n\n'
    "data: [DONE]\n\n"
)

BATCH_BODY = {
    "success": True,
    "content": "4",
    "messages": [{"role": "assistant", "content": "4"}],
    "toolCalls": [],
    "toolResults": [],
}


class Recorder:
    """Mock transport handler that remembers the requests it saw."""

    def __init__(self, status_code=200, body=None, sse=None):
        self.status_code = status_code
        self.body = body
        self.sse = sse
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.sse is not None:
            return httpx.Response(
                self.status_code, content=self.sse.encode(), headers={"content-type": "text/event-stream"}
            )
        return httpx.Response(self.status_code, json=self.body)


# ---------------------------------------------------------------------------
# Sync client
# ---------------------------------------------------------------------------


class TestChatClient:
    def test_stream_parses_events(self):
        handler = Recorder(sse=SSE_BODY)
        client = ChatClient("http://test/", api_key="dev-key", transport=httpx.MockTransport(handler))

        events = list(client.stream({"messages": [{"role": "user", "content": "hi"}]}))

        assert [e.type.value for e in events] == ["message:start", "message:delta", "message:end", "done"]
        assert events[1] == MessageDeltaEvent(content="Hi")
        assert events[-1] == DoneEvent(messages=[Message.assistant("Hi")])

        request = handler.requests[0]
        assert request.url.path == "/api/chat"
        assert request.headers["X-API-Key"] == "dev-key"
        assert json.loads(request.content)["streaming"] is True

    def test_send_returns_response(self):
        handler = Recorder(body=BATCH_BODY)
        with ChatClient("http://test", transport=httpx.MockTransport(handler)) as client:
            response = client.send(ChatRequest(messages=[Message.user("2+2?")]))

        assert response.content == "4"
        assert response.messages == [Message.assistant("4")]
        payload = json.loads(handler.requests[0].content)
        assert payload["streaming"] is False
        assert payload["messages"] == [{"role": "user", "content": "2+2?"}]
        assert "X-API-Key" not in handler.requests[0].headers

    def test_send_parses_failed_response_body(self):
        body = {"success": False, "content": "", "error": {"message": "quota", "code": "OPENAI_ERROR"}}
        client = ChatClient("http://test", transport=httpx.MockTransport(Recorder(500, body)))

        response = client.send({"messages": []})

        assert response.success is False
        assert response.error["code"] == "OPENAI_ERROR"

    def test_unauthorized(self):
        client = ChatClient(
            "http://test", transport=httpx.MockTransport(Recorder(401, {"detail": "Invalid or missing API key"}))
        )
        with pytest.raises(AuthenticationError) as exc_info:
            client.send({"messages": []})
        assert exc_info.value.status_code == 401
        assert "Invalid or missing API key" in exc_info.value.message

    def test_stream_http_error(self):
        client = ChatClient(
            "http://test", transport=httpx.MockTransport(Recorder(400, {"detail": "messages must not be empty"}))
        )
        with pytest.raises(APIError) as exc_info:
            list(client.stream({"messages": []}))
        assert exc_info.value.status_code == 400
        assert exc_info.value.response == {"detail": "messages must not be empty"}


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------


class TestAsyncChatClient:
    @pytest.mark.asyncio
    async def test_stream_parses_events(self):
        handler = Recorder(sse=SSE_BODY)
        async with AsyncChatClient("http://test", transport=httpx.MockTransport(handler)) as client:
            events = [e async for e in client.stream({"messages": [{"role": "user", "content": "hi"}]})]

        assert len(events) == 4
        assert events[-1].messages == [Message.assistant("Hi")]

    @pytest.mark.asyncio
    async def test_send(self):
        handler = Recorder(body=BATCH_BODY)
        async with AsyncChatClient("http://test", api_key="k", transport=httpx.MockTransport(handler)) as client:
            response = await client.send({"messages": [{"role": "user", "content": "2+2?"}]})

        assert response.success is True
        assert response.content == "4"
        assert handler.requests[0].headers["X-API-Key"] == "k"

    @pytest.mark.asyncio
    async def test_server_error_status(self):
        async with AsyncChatClient(
            "http://test", transport=httpx.MockTransport(Recorder(503, {"detail": "busy"}))
        ) as client:
            with pytest.raises(APIError) as exc_info:
                await client.send({"messages": []})

        assert exc_info.value.status_code == 503
        assert not isinstance(exc_info.value, AuthenticationError)
