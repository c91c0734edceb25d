"""Formatter for Gemini-style function declarations.

Native shapes follow the ``google-generativeai`` dict form (snake_case keys).
Parsing also accepts the camelCase REST form.
"""

import json
import logging
from typing import Any, Optional

from ..models import Message, MessageRole, ToolCall, ToolDefinition, ToolResult, parse_tool_arguments
from .base import NativeConversation, ProviderFormatter, as_dict, ensure_object_schema, new_tool_call_id

logger = logging.getLogger("llmsdk.formatters")

# Schema keywords Gemini's function declarations understand
SUPPORTED_SCHEMA_KEYS = frozenset(
    {"type", "format", "description", "nullable", "enum", "properties", "required", "items"}
)


def sanitize_schema(schema: Any) -> Any:
    """Recursively drop JSON-schema keywords Gemini rejects."""
    if not isinstance(schema, dict):
        return schema
    cleaned: dict[str, Any] = {}
    for key, value in schema.items():
        if key not in SUPPORTED_SCHEMA_KEYS:
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {name: sanitize_schema(prop) for name, prop in value.items()}
        elif key == "items":
            cleaned[key] = sanitize_schema(value)
        elif key == "type" and isinstance(value, list):
            # ["string", "null"] style unions
            non_null = [t for t in value if t != "null"]
            cleaned[key] = non_null[0] if non_null else "string"
            if "null" in value:
                cleaned["nullable"] = True
        else:
            cleaned[key] = value
    return cleaned


def _get(data: dict[str, Any], snake: str, camel: str) -> Any:
    value = data.get(snake)
    return value if value is not None else data.get(camel)


class GeminiFormatter(ProviderFormatter):
    """Tool results go back as ``function_response`` parts in a user turn."""

    name = "gemini"

    def transform_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        if not tools:
            return []
        declarations = []
        for tool in tools:
            declaration: dict[str, Any] = {"name": tool.name, "description": tool.description}
            parameters = sanitize_schema(ensure_object_schema(tool.input_schema))
            if parameters.get("properties"):
                declaration["parameters"] = parameters
            declarations.append(declaration)
        return [{"function_declarations": declarations}]

    def _candidate(self, raw_response: Any) -> dict[str, Any]:
        candidates = as_dict(raw_response).get("candidates")
        if isinstance(candidates, list) and candidates:
            return candidates[0] or {}
        return {}

    def _parts(self, raw_response: Any) -> list[dict[str, Any]]:
        data = as_dict(raw_response)
        if "candidates" not in data and "parts" in data:
            content = data
        else:
            content = self._candidate(raw_response).get("content") or {}
        parts = content.get("parts")
        if not isinstance(parts, list):
            return []
        return [part for part in parts if isinstance(part, dict)]

    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        calls: list[ToolCall] = []
        for part in self._parts(raw_response):
            function_call = _get(part, "function_call", "functionCall")
            if not isinstance(function_call, dict) or not function_call.get("name"):
                continue
            calls.append(
                ToolCall(
                    id=function_call.get("id") or new_tool_call_id(),
                    name=function_call["name"],
                    input=parse_tool_arguments(function_call.get("args")),
                )
            )
        return calls

    def extract_text_content(self, raw_response: Any) -> str:
        return "".join(
            part.get("text") or ""
            for part in self._parts(raw_response)
            if not part.get("thought")
        )

    def get_stop_reason(self, raw_response: Any) -> Optional[str]:
        reason = _get(self._candidate(raw_response), "finish_reason", "finishReason")
        return str(reason) if reason is not None else None

    def _has_function_calls(self, raw_response: Any) -> bool:
        return any(
            _get(part, "function_call", "functionCall") for part in self._parts(raw_response)
        )

    def is_tool_use_stop(self, raw_response: Any) -> bool:
        return self._has_function_calls(raw_response)

    def is_end_turn_stop(self, raw_response: Any) -> bool:
        return self.get_stop_reason(raw_response) == "STOP" and not self._has_function_calls(raw_response)

    def build_assistant_tool_message(
        self, tool_calls: list[ToolCall], text: Optional[str] = None
    ) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        if text:
            parts.append({"text": text})
        for call in tool_calls:
            parts.append({"function_call": {"id": call.id, "name": call.name, "args": call.input}})
        return {"role": "model", "parts": parts}

    def _function_response(self, tool_call_id: str, name: str, content: str) -> dict[str, Any]:
        try:
            response = json.loads(content) if content else {}
        except (json.JSONDecodeError, ValueError):
            response = {"result": content}
        if not isinstance(response, dict):
            response = {"result": response}
        return {"function_response": {"id": tool_call_id, "name": name, "response": response}}

    def build_tool_result_message(self, results: list[ToolResult]) -> list[dict[str, Any]]:
        if not results:
            return []
        return [
            {
                "role": "user",
                "parts": [
                    self._function_response(r.tool_call_id, r.name or "tool", r.content) for r in results
                ],
            }
        ]

    def _user_parts(self, message: Message) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = []
        for attachment in message.attachments:
            if attachment.data is not None:
                parts.append(
                    {"inline_data": {"mime_type": attachment.media_type, "data": attachment.base64_data}}
                )
            elif attachment.url:
                parts.append({"file_data": {"mime_type": attachment.media_type, "file_uri": attachment.url}})
        if message.content:
            parts.append({"text": message.content})
        return parts

    def format_conversation(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> NativeConversation:
        system_parts = [system_prompt] if system_prompt else []
        call_names: dict[str, str] = {}
        turns: list[dict[str, Any]] = []

        for message in messages:
            if message.role == MessageRole.SYSTEM:
                if message.content:
                    system_parts.append(message.content)
                continue

            if message.role == MessageRole.TOOL:
                call_id = message.tool_call_id or ""
                name = message.name or call_names.get(call_id, "tool")
                role = "user"
                parts = [self._function_response(call_id, name, message.content or "")]
            elif message.role == MessageRole.ASSISTANT:
                for call in message.tool_calls:
                    call_names[call.id] = call.name
                role = "model"
                parts = self.build_assistant_tool_message(list(message.tool_calls), message.content)["parts"]
            else:
                role = "user"
                parts = self._user_parts(message)

            if not parts:
                continue
            if turns and turns[-1]["role"] == role:
                turns[-1]["parts"].extend(parts)
            else:
                turns.append({"role": role, "parts": list(parts)})

        while turns and turns[0]["role"] != "user":
            logger.debug("Dropping leading model turn, Gemini history must start with a user turn")
            turns.pop(0)

        system = "\n\n".join(system_parts) if system_parts else None
        return NativeConversation(system=system, messages=turns)
