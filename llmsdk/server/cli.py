"""
Command-line interface for the llmsdk chat server.
"""

import argparse
import logging
import sys

from .. import __version__
from ..exceptions import ConfigurationError
from ..runtime import DEFAULT_MAX_ITERATIONS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llmsdk-server",
        description="llmsdk chat server - agentic completions over SSE",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="Model provider, e.g. openai, anthropic, google, ollama (default: inferred from --model)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model name (default: the provider's default model)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help=f"Agent loop iteration budget (default: {DEFAULT_MAX_ITERATIONS})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    from .app import LLMServer
    from .config import ServerConfig

    config = ServerConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.provider is not None:
        config.provider = args.provider
    if args.model is not None:
        config.model = args.model
    if args.max_iterations is not None:
        config.max_iterations = args.max_iterations
    if args.debug:
        config.debug = True
    if args.log_level is not None:
        config.log_level = args.log_level
    if config.debug:
        config.log_level = "debug"

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        server = LLMServer(config)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(2)

    print(f"""
llmsdk server v{__version__}
  Provider: {server.app.state.runtime.provider}
  Model:    {server.app.state.runtime.get_model()}
  Listening on http://{config.host}:{config.port}

Press Ctrl+C to stop the server.
""")

    try:
        server.run()
    except KeyboardInterrupt:
        print("\nServer stopped.")
        sys.exit(0)


if __name__ == "__main__":
    main()
