"""OpenAI-compatible chat completions adapter (OpenAI, Ollama)."""

import json
from collections.abc import Sequence
from typing import Any

from cmsai.clients.base import HttpProviderAdapter, ProviderError, ToolChoice, placeholder_call_id
from cmsai.models.llm import (
    ImageBlock,
    LLMUsage,
    Message,
    ProviderTurn,
    Role,
    TextBlock,
    ToolDescriptor,
    ToolResultBlock,
    ToolUseBlock,
)
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)


class OpenAICompatibleAdapter(HttpProviderAdapter):
    """Adapter for the ``/chat/completions`` wire format.

    The system prompt is the first message. Tool calls ride on an assistant
    message's ``tool_calls`` and each result is a separate ``tool`` message.
    """

    provider = "openai"

    def _send(self, system_prompt: str, history: list[Message], tool_choice: ToolChoice) -> ProviderTurn:
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        for message in history:
            messages.extend(self._serialize_message(message))

        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if self.tools:
            payload["tools"] = self.format_tools(self.tools)
            payload["tool_choice"] = self.format_tool_choice(tool_choice)

        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        body = self._post_json(f"{self.config.base_url.rstrip('/')}/chat/completions", payload, headers=headers)

        choices = body.get("choices") or []
        if not choices:
            raise ProviderError("response missing choices")

        choice = choices[0]
        usage_data = body.get("usage") or {}
        return ProviderTurn(
            messages=self._parse_message(choice.get("message") or {}),
            ok=True,
            usage=LLMUsage(
                input_tokens=usage_data.get("prompt_tokens", 0),
                output_tokens=usage_data.get("completion_tokens", 0),
            ),
            stop_reason=choice.get("finish_reason"),
        )

    def _parse_message(self, message: dict[str, Any]) -> list[Message]:
        messages: list[Message] = []

        content = message.get("content")
        if isinstance(content, list):
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        if content:
            messages.append(Message(role=Role.ASSISTANT, content=[TextBlock(text=content)]))

        tool_blocks = []
        for tool_call in message.get("tool_calls") or []:
            function = tool_call.get("function") or {}
            tool_blocks.append(
                ToolUseBlock(
                    id=tool_call.get("id") or placeholder_call_id(),
                    name=function.get("name", ""),
                    input=self._parse_arguments(function.get("arguments")),
                )
            )
        if tool_blocks:
            messages.append(Message(role=Role.ASSISTANT, content=tool_blocks))

        return messages

    @staticmethod
    def _parse_arguments(arguments: Any) -> dict[str, Any]:
        if isinstance(arguments, dict):
            return arguments
        if not arguments:
            return {}
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError:
            logger.warning(f"Could not decode tool arguments: {arguments[:200]}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _serialize_message(self, message: Message) -> list[dict[str, Any]]:
        if isinstance(message.content, str):
            role = "assistant" if message.role == Role.ASSISTANT else "user"
            return [{"role": role, "content": message.content}]

        results = [block for block in message.content if isinstance(block, ToolResultBlock)]
        if results:
            return [{"role": "tool", "tool_call_id": r.tool_use_id, "content": r.content} for r in results]

        if message.role == Role.ASSISTANT:
            text = "".join(block.text for block in message.content if isinstance(block, TextBlock))
            tool_calls = [
                {
                    "id": block.id,
                    "type": "function",
                    "function": {"name": block.name, "arguments": json.dumps(block.input)},
                }
                for block in message.content
                if isinstance(block, ToolUseBlock)
            ]
            wire: dict[str, Any] = {"role": "assistant", "content": text or None}
            if tool_calls:
                wire["tool_calls"] = tool_calls
            return [wire]

        parts: list[dict[str, Any]] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                parts.append({"type": "text", "text": block.text})
            elif isinstance(block, ImageBlock):
                parts.append({"type": "image_url", "image_url": {"url": block.data_url}})
        return [{"role": "user", "content": parts}]

    def build_tool_result_message(self, tool_call_id: str, result: str, is_error: bool = False) -> Message:
        return Message(
            role=Role.TOOL,
            content=[ToolResultBlock(tool_use_id=tool_call_id, content=result, is_error=is_error)],
        )

    def format_tools(self, tools: Sequence[ToolDescriptor]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            }
            for tool in tools
        ]

    def format_tool_choice(self, tool_choice: ToolChoice) -> str | dict[str, Any]:
        if tool_choice == "auto":
            return "auto"
        return {"type": "function", "function": {"name": tool_choice}}
