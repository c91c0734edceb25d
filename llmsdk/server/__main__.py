"""
Entry point for running the server as a module.

Usage:
    python -m llmsdk.server
    python -m llmsdk.server --provider anthropic --model claude-sonnet-4-20250514
"""

from .cli import main

if __name__ == "__main__":
    main()
