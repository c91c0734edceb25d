"""Formatter for Anthropic-style tool-use content blocks."""

import logging
from typing import Any, Optional

from ..models import Message, MessageAttachment, MessageRole, ToolCall, ToolDefinition, ToolResult, parse_tool_arguments
from .base import NativeConversation, ProviderFormatter, as_dict, ensure_object_schema, new_tool_call_id

logger = logging.getLogger("llmsdk.formatters")

END_TURN_REASONS = frozenset({"end_turn", "stop_sequence"})


class AnthropicFormatter(ProviderFormatter):
    """Tool results are bundled into one ``user`` message of ``tool_result`` blocks."""

    name = "anthropic"

    def transform_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": ensure_object_schema(tool.input_schema),
            }
            for tool in tools
        ]

    def _blocks(self, raw_response: Any) -> list[dict[str, Any]]:
        content = as_dict(raw_response).get("content")
        if not isinstance(content, list):
            return []
        return [block for block in content if isinstance(block, dict)]

    def parse_tool_calls(self, raw_response: Any) -> list[ToolCall]:
        return [
            ToolCall(
                id=block.get("id") or new_tool_call_id("toolu"),
                name=block["name"],
                input=parse_tool_arguments(block.get("input")),
            )
            for block in self._blocks(raw_response)
            if block.get("type") == "tool_use" and block.get("name")
        ]

    def extract_text_content(self, raw_response: Any) -> str:
        return "".join(
            block.get("text") or "" for block in self._blocks(raw_response) if block.get("type") == "text"
        )

    def extract_thinking(self, raw_response: Any) -> str:
        return "".join(
            block.get("thinking") or "" for block in self._blocks(raw_response) if block.get("type") == "thinking"
        )

    def get_stop_reason(self, raw_response: Any) -> Optional[str]:
        return as_dict(raw_response).get("stop_reason")

    def is_tool_use_stop(self, raw_response: Any) -> bool:
        return self.get_stop_reason(raw_response) == "tool_use"

    def is_end_turn_stop(self, raw_response: Any) -> bool:
        return self.get_stop_reason(raw_response) in END_TURN_REASONS

    def build_assistant_tool_message(
        self, tool_calls: list[ToolCall], text: Optional[str] = None
    ) -> dict[str, Any]:
        content: list[dict[str, Any]] = []
        if text:
            content.append({"type": "text", "text": text})
        for call in tool_calls:
            content.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.input})
        return {"role": "assistant", "content": content}

    def _tool_result_block(self, tool_call_id: str, content: str, is_error: bool = False) -> dict[str, Any]:
        block: dict[str, Any] = {"type": "tool_result", "tool_use_id": tool_call_id, "content": content}
        if is_error:
            block["is_error"] = True
        return block

    def build_tool_result_message(self, results: list[ToolResult]) -> list[dict[str, Any]]:
        if not results:
            return []
        return [
            {
                "role": "user",
                "content": [
                    self._tool_result_block(r.tool_call_id, r.content, is_error=not r.success)
                    for r in results
                ],
            }
        ]

    def _attachment_block(self, attachment: MessageAttachment) -> Optional[dict[str, Any]]:
        if attachment.type == "image":
            if attachment.data is not None:
                source = {
                    "type": "base64",
                    "media_type": attachment.media_type,
                    "data": attachment.base64_data,
                }
            elif attachment.url:
                source = {"type": "url", "url": attachment.url}
            else:
                return None
            return {"type": "image", "source": source}

        if attachment.type == "file" and attachment.media_type == "application/pdf":
            if attachment.data is not None:
                source = {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": attachment.base64_data,
                }
            elif attachment.url:
                source = {"type": "url", "url": attachment.url}
            else:
                return None
            return {"type": "document", "source": source}

        logger.debug("Skipping %s attachment for Anthropic request", attachment.type)
        return None

    def _user_message(self, message: Message) -> dict[str, Any]:
        if not message.attachments:
            return {"role": "user", "content": message.content or ""}
        content: list[dict[str, Any]] = []
        for attachment in message.attachments:
            block = self._attachment_block(attachment)
            if block is not None:
                content.append(block)
        if message.content:
            content.append({"type": "text", "text": message.content})
        return {"role": "user", "content": content}

    def format_conversation(
        self, messages: list[Message], system_prompt: Optional[str] = None
    ) -> NativeConversation:
        system_parts = [system_prompt] if system_prompt else []
        native: list[dict[str, Any]] = []
        pending_results: list[dict[str, Any]] = []

        def flush() -> None:
            if pending_results:
                native.append({"role": "user", "content": list(pending_results)})
                pending_results.clear()

        for message in messages:
            if message.role == MessageRole.TOOL:
                pending_results.append(
                    self._tool_result_block(message.tool_call_id or "", message.content or "")
                )
                continue

            flush()
            if message.role == MessageRole.SYSTEM:
                if message.content:
                    system_parts.append(message.content)
            elif message.role == MessageRole.USER:
                native.append(self._user_message(message))
            elif message.tool_calls:
                native.append(self.build_assistant_tool_message(list(message.tool_calls), message.content))
            elif message.content:
                native.append({"role": "assistant", "content": message.content})

        flush()
        system = "\n\n".join(system_parts) if system_parts else None
        return NativeConversation(system=system, messages=native)
