"""Google Gemini generateContent adapter."""

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

# Subset of JSON schema keywords accepted in function declarations
_SCHEMA_KEYS = frozenset({"type", "format", "description", "nullable", "enum", "properties", "required", "items"})

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Reduce a JSON schema to the keywords Gemini accepts."""
    reduced: dict[str, Any] = {}
    for key, value in schema.items():
        if key not in _SCHEMA_KEYS:
            continue
        if key == "properties":
            reduced[key] = {name: to_gemini_schema(prop) for name, prop in value.items()}
        elif key == "items":
            reduced[key] = to_gemini_schema(value)
        else:
            reduced[key] = value
    return reduced


class GeminiAdapter(HttpProviderAdapter):
    """Adapter for Gemini.

    Gemini gets no native tool-result turns or images from us: tool use and
    tool results are replayed as descriptive text parts and image messages
    degrade to text. Function calls come back without ids, so a placeholder
    id is generated for each.
    """

    provider = "gemini"

    def _send(self, system_prompt: str, history: list[Message], tool_choice: ToolChoice) -> ProviderTurn:
        payload: dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [self._serialize_message(message) for message in history],
            "generationConfig": {
                "temperature": self.config.temperature,
                "topP": 0.95,
                "maxOutputTokens": self.config.max_tokens,
            },
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"} for category in _SAFETY_CATEGORIES
            ],
        }
        if self.tools:
            payload["tools"] = self.format_tools(self.tools)
            payload["tool_config"] = self.format_tool_choice(tool_choice)

        url = f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"
        body = self._post_json(
            url,
            payload,
            headers={"Content-Type": "application/json"},
            params={"key": self.config.api_key},
        )

        candidates = body.get("candidates") or []
        content = candidates[0].get("content") if candidates else None
        if not content or "parts" not in content:
            raise ProviderError("response missing candidate content parts")

        usage_data = body.get("usageMetadata") or {}
        return ProviderTurn(
            messages=self._parse_parts(content["parts"]),
            ok=True,
            usage=LLMUsage(
                input_tokens=usage_data.get("promptTokenCount", 0),
                output_tokens=usage_data.get("candidatesTokenCount", 0),
            ),
            stop_reason=candidates[0].get("finishReason"),
        )

    def _parse_parts(self, parts: list[dict[str, Any]]) -> list[Message]:
        messages: list[Message] = []
        for part in parts:
            if part.get("functionCall"):
                call = part["functionCall"]
                block = ToolUseBlock(
                    id=call.get("id") or placeholder_call_id(),
                    name=call.get("name", ""),
                    input=call.get("args") or {},
                )
                messages.append(Message(role=Role.ASSISTANT, content=[block]))
            elif part.get("text"):
                messages.append(Message(role=Role.ASSISTANT, content=[TextBlock(text=part["text"])]))
            else:
                logger.warning(f"Unknown Gemini part: {sorted(part)}")
        return messages

    def _serialize_message(self, message: Message) -> dict[str, Any]:
        role = "model" if message.role == Role.ASSISTANT else "user"
        return {"role": role, "parts": [{"text": self._describe_block(block)} for block in message.blocks]}

    @staticmethod
    def _describe_block(block: TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock) -> str:
        if isinstance(block, ToolUseBlock):
            return f"Tool use for tool ID {block.id}: {block.name} {json.dumps(block.input)}"
        if isinstance(block, ToolResultBlock):
            return f"Tool result for tool use ID {block.tool_use_id}: {block.content}"
        if isinstance(block, ImageBlock):
            return "[image attachment omitted]"
        return block.text

    def build_image_message(self, image: ImageBlock, text: str) -> Message:
        return Message(
            role=Role.USER,
            content=f"User input for image: {text} (image attachments are not supported for this model)",
        )

    def build_tool_result_message(self, tool_call_id: str, result: str, is_error: bool = False) -> Message:
        return Message(
            role=Role.USER,
            content=[ToolResultBlock(tool_use_id=tool_call_id, content=result, is_error=is_error)],
        )

    def format_tools(self, tools: Sequence[ToolDescriptor]) -> list[dict[str, Any]]:
        return [
            {
                "functionDeclarations": [
                    {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": to_gemini_schema(tool.input_schema),
                    }
                    for tool in tools
                ]
            }
        ]

    def format_tool_choice(self, tool_choice: ToolChoice) -> dict[str, Any]:
        if tool_choice == "auto":
            return {"function_calling_config": {"mode": "AUTO"}}
        return {"function_calling_config": {"mode": "ANY", "allowed_function_names": [tool_choice]}}
