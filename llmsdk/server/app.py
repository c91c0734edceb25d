"""
FastAPI application for the llmsdk chat server.
"""

import asyncio
import logging
from contextlib import aclosing, asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from .. import __version__
from ..exceptions import LLMSDKError
from ..models import ChatRequest
from ..runtime import AgentLoopConfig, Runtime, RuntimeConfig
from ..streaming import sse_payloads, text_chunks, to_json
from .config import ServerConfig

logger = logging.getLogger("llmsdk.server")


class ChatBody(BaseModel):
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")
    request_config: Optional[Dict[str, Any]] = Field(None, alias="config")
    streaming: bool = True
    thread_id: Optional[str] = Field(None, alias="threadId")
    knowledge_base: Optional[Dict[str, Any]] = Field(None, alias="knowledgeBase")

    class Config:
        populate_by_name = True

    def to_request(self, defaults: ServerConfig) -> ChatRequest:
        request = ChatRequest.from_dict(self.model_dump(by_alias=True, exclude_none=True))
        if request.config.temperature is None:
            request.config.temperature = defaults.temperature
        if request.config.max_tokens is None:
            request.config.max_tokens = defaults.max_tokens
        return request


def build_runtime(config: ServerConfig) -> Runtime:
    """Build the runtime described by a server configuration."""
    return Runtime(
        RuntimeConfig(
            provider=config.provider,
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            system_prompt=config.system_prompt,
            agent_loop=AgentLoopConfig(max_iterations=config.max_iterations),
            debug=config.debug,
        )
    )


def create_app(config: Optional[ServerConfig] = None, runtime: Optional[Runtime] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = ServerConfig.from_env()
    if runtime is None:
        runtime = build_runtime(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "llmsdk server ready: provider=%s model=%s", runtime.provider, runtime.get_model()
        )
        yield
        logger.info("llmsdk server shutting down")

    app = FastAPI(
        title="llmsdk Server",
        description="Agentic chat completions over SSE",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def validate_api_key(x_api_key: str = Header(None)) -> Optional[str]:
        keys = app.state.config.api_keys
        if not keys:
            return x_api_key
        if x_api_key is None or x_api_key not in keys:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")
        return x_api_key

    def parse_body(body: ChatBody) -> ChatRequest:
        try:
            request = body.to_request(app.state.config)
        except (KeyError, ValueError, LLMSDKError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        if not request.messages:
            raise HTTPException(status_code=400, detail="messages must not be empty")
        return request

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "provider": app.state.runtime.provider,
            "model": app.state.runtime.get_model(),
        }

    @app.get("/api/tools")
    async def list_tools(api_key: str = Depends(validate_api_key)):
        return {"tools": [tool.to_dict() for tool in app.state.runtime.get_tools()]}

    @app.post("/api/chat")
    async def chat(
        body: ChatBody,
        http_request: Request,
        api_key: str = Depends(validate_api_key),
    ):
        chat_request = parse_body(body)
        headers = dict(http_request.headers)
        signal = asyncio.Event()

        if not chat_request.streaming:
            response = await app.state.runtime.complete(chat_request, signal=signal, headers=headers)
            return Response(
                to_json(response.to_dict()),
                status_code=200 if response.success else 500,
                media_type="application/json",
            )

        async def event_generator():
            events = app.state.runtime.stream(chat_request, signal=signal, headers=headers)
            async with aclosing(events):
                async with aclosing(sse_payloads(events)) as payloads:
                    async for payload in payloads:
                        if await http_request.is_disconnected():
                            logger.info("Client disconnected; cancelling chat")
                            signal.set()
                            break
                        yield payload

        return EventSourceResponse(event_generator())

    @app.post("/api/chat/text")
    async def chat_text(
        body: ChatBody,
        http_request: Request,
        api_key: str = Depends(validate_api_key),
    ):
        chat_request = parse_body(body)
        events = app.state.runtime.stream(
            chat_request, signal=asyncio.Event(), headers=dict(http_request.headers)
        )
        return StreamingResponse(text_chunks(events), media_type="text/plain; charset=utf-8")

    return app


class LLMServer:
    """High-level server class for running the chat server."""

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        runtime: Optional[Runtime] = None,
        **kwargs,
    ):
        self.config = config or ServerConfig(**kwargs)
        self.app = create_app(self.config, runtime=runtime)

    def run(self):
        """Run the server (blocking)."""
        import uvicorn

        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
        )

    async def run_async(self):
        """Run the server asynchronously."""
        import uvicorn

        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
        )
        server = uvicorn.Server(config)
        await server.serve()
