"""
llmsdk - Custom exceptions for error handling.
"""

from typing import Any, Optional


class LLMSDKError(Exception):
    """Base exception for all llmsdk errors."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigurationError(LLMSDKError):
    """Raised when the runtime or server is configured inconsistently."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")


class UnsupportedProviderError(LLMSDKError):
    """Raised when no formatter or adapter is registered for a provider."""

    def __init__(self, provider: str, supported: Optional[list[str]] = None) -> None:
        supported_text = ", ".join(supported) if supported else "none"
        super().__init__(
            f"Unsupported provider: {provider}. Supported providers: {supported_text}",
            code="UNSUPPORTED_PROVIDER",
        )
        self.provider = provider
        self.supported = supported or []


class ToolDefinitionError(LLMSDKError):
    """Raised when a tool definition is invalid, e.g. a server tool without a handler."""

    def __init__(self, message: str, tool_name: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_TOOL")
        self.tool_name = tool_name


class ProviderError(LLMSDKError):
    """Raised when a vendor call fails at the transport level."""

    def __init__(
        self,
        message: str,
        code: str = "PROVIDER_ERROR",
        provider: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, code=code)
        self.provider = provider
        self.cause = cause


class APIError(LLMSDKError):
    """Raised when a chat server request fails with an HTTP error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="API_ERROR")
        self.status_code = status_code
        self.response = response


class AuthenticationError(APIError):
    """Raised when the chat server rejects the API key."""

    pass
