"""Formatter for OpenAI-style function calling.

Also used by every OpenAI-compatible backend (Azure, xAI, OpenRouter,
DeepSeek, Groq and Ollama).
"""

import logging
from typing import Any, Optional

from ..models import Message, MessageRole, ToolCall, ToolDefinition, ToolResult, parse_tool_arguments
from .base import NativeConversation, ProviderFormatter, as_dict, ensure_object_schema, new_tool_call_id

logger = logging.getLogger("llmsdk.formatters")

TOOL_STOP_REASONS = frozenset({"tool_calls", "function_call"})
END_TURN_REASONS = frozenset({"stop"})


class OpenAIFormatter(ProviderFormatter):
    """Tool results go back as one ``tool``-role message per call."""

    name = "openai"

    def transform_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": ensure_object_schema(tool.input_schema),
                },
            }
            for tool in tools
        ]

    def _choice(self, raw_response: Any) -> dict[str, Any]:
        data = as_dict(raw_response)
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            return choices[0] or {}
        return {}

    def _message(self, raw_response: Any) -> dict[str, Any]:
        data = as_dict(raw_response)
        if "choices" not in data and ("tool_calls" in data or "role" in data):
            return data
        choice = self._choice(raw_response)
        return choice.get("message") or choice.get("delta") or {}

    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        message = self._message(raw_response)
        calls: list[ToolCall] = []

        for raw_call in message.get("tool_calls") or []:
            function = (raw_call or {}).get("function") or {}
            name = function.get("name")
            if not name:
                continue
            calls.append(
                ToolCall(
                    id=raw_call.get("id") or new_tool_call_id(),
                    name=name,
                    input=parse_tool_arguments(function.get("arguments")),
                )
            )

        # Legacy single function_call
        legacy = message.get("function_call")
        if not calls and isinstance(legacy, dict) and legacy.get("name"):
            calls.append(
                ToolCall(
                    id=new_tool_call_id(),
                    name=legacy["name"],
                    input=parse_tool_arguments(legacy.get("arguments")),
                )
            )
        return calls

    def extract_text_content(self, raw_response: Any) -> str:
        content = self._message(raw_response).get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                part.get("text", "")
                for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            )
        return ""

    def get_stop_reason(self, raw_response: Any) -> Optional[str]:
        return self._choice(raw_response).get("finish_reason")

    def is_tool_use_stop(self, raw_response: Any) -> bool:
        return self.get_stop_reason(raw_response) in TOOL_STOP_REASONS

    def is_end_turn_stop(self, raw_response: Any) -> bool:
        return self.get_stop_reason(raw_response) in END_TURN_REASONS

    def build_assistant_tool_message(
        self, tool_calls: list[ToolCall], text: Optional[str] = None
    ) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": text or None,
            "tool_calls": [call.to_dict() for call in tool_calls],
        }

    def build_tool_result_message(self, results: list[ToolResult]) -> list[dict[str, Any]]:
        return [
            {"role": "tool", "tool_call_id": result.tool_call_id, "content": result.content}
            for result in results
        ]

    def _user_content(self, message: Message) -> Any:
        if not message.attachments:
            return message.content or ""

        blocks: list[dict[str, Any]] = []
        if message.content:
            blocks.append({"type": "text", "text": message.content})
        for attachment in message.attachments:
            uri = attachment.as_data_uri()
            if uri is None:
                continue
            if attachment.type == "image":
                blocks.append({"type": "image_url", "image_url": {"url": uri, "detail": "auto"}})
            elif attachment.type == "file" and attachment.data is not None:
                blocks.append(
                    {
                        "type": "file",
                        "file": {"filename": attachment.filename or "file", "file_data": uri},
                    }
                )
            else:
                logger.debug("Skipping %s attachment for OpenAI request", attachment.type)
        return blocks

    def format_conversation(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> NativeConversation:
        native: list[dict[str, Any]] = []
        has_system = any(m.role == MessageRole.SYSTEM for m in messages)
        if system_prompt and not has_system:
            native.append({"role": "system", "content": system_prompt})

        for message in messages:
            if message.role == MessageRole.TOOL:
                native.append(
                    {
                        "role": "tool",
                        "tool_call_id": message.tool_call_id or "",
                        "content": message.content or "",
                    }
                )
            elif message.role == MessageRole.ASSISTANT and message.tool_calls:
                native.append(self.build_assistant_tool_message(list(message.tool_calls), message.content))
            elif message.role == MessageRole.USER:
                native.append({"role": "user", "content": self._user_content(message)})
            else:
                native.append({"role": message.role.value, "content": message.content or ""})

        return NativeConversation(system=None, messages=native)
