"""
llmsdk Server - serves the agent loop over HTTP.

Run with:
    llmsdk-server              # CLI entry point
    python -m llmsdk.server    # Module entry point

Or programmatically:
    from llmsdk.server import LLMServer, ServerConfig
    server = LLMServer(ServerConfig(model="gpt-4o"))
    server.run()
"""

from .app import LLMServer, build_runtime, create_app
from .config import ServerConfig

__all__ = [
    "create_app",
    "build_runtime",
    "LLMServer",
    "ServerConfig",
]
