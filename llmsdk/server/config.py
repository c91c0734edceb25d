"""
Server configuration for llmsdk.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Set

from ..runtime import DEFAULT_MAX_ITERATIONS

ENV_PREFIX = "LLMSDK_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_float(name: str) -> Optional[float]:
    value = _env(name)
    return float(value) if value else None


def _env_int(name: str) -> Optional[int]:
    value = _env(name)
    return int(value) if value else None


def _split(value: Optional[str]) -> list:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class ServerConfig:
    """Configuration for the chat server.

    An empty ``api_keys`` set disables the ``X-API-Key`` check.
    """

    host: str = "0.0.0.0"
    port: int = 8000

    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    system_prompt: Optional[str] = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    api_keys: Set[str] = field(default_factory=set)

    cors_origins: list = field(default_factory=lambda: ["*"])

    debug: bool = False

    log_level: str = "info"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Create configuration from ``LLMSDK_*`` environment variables."""
        return cls(
            host=_env("HOST", "0.0.0.0"),
            port=int(_env("PORT", "8000")),
            provider=_env("PROVIDER"),
            model=_env("MODEL"),
            api_key=_env("API_KEY"),
            base_url=_env("BASE_URL"),
            system_prompt=_env("SYSTEM_PROMPT"),
            max_iterations=_env_int("MAX_ITERATIONS") or DEFAULT_MAX_ITERATIONS,
            temperature=_env_float("TEMPERATURE"),
            max_tokens=_env_int("MAX_TOKENS"),
            api_keys=set(_split(_env("API_KEYS"))),
            cors_origins=_split(_env("CORS_ORIGINS")) or ["*"],
            debug=(_env("DEBUG", "") or "").lower() == "true",
            log_level=_env("LOG_LEVEL", "info"),
        )
