"""Anthropic Messages API adapter."""

from collections.abc import Sequence
from typing import Any, Literal

import httpx
from anthropic import Anthropic, APIError, APIStatusError
from anthropic.types import ContentBlock as AnthropicContentBlock
from pydantic import BaseModel

from cmsai.clients.base import ProviderAdapter, ProviderConfig, ProviderError, ProviderRateLimiter, ToolChoice
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


class CacheControl(BaseModel):
    """Cache control configuration for prompt caching."""

    type: Literal["ephemeral"] = "ephemeral"
    ttl: Literal["5m", "1h"] = "5m"


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]
    cache_control: CacheControl | None = None


class AnthropicAdapter(ProviderAdapter):
    """Anthropic adapter.

    Tool results travel as ``tool_result`` content blocks inside a user
    message, images as base64 ``image`` blocks.
    """

    provider = "anthropic"

    def __init__(
        self,
        config: ProviderConfig,
        tools: Sequence[ToolDescriptor] = (),
        rate_limiter: ProviderRateLimiter | None = None,
        http_client: httpx.Client | None = None,
    ):
        super().__init__(config, tools, rate_limiter)
        self._http_client = http_client
        self._client: Anthropic | None = None

    @property
    def client(self) -> Anthropic:
        # Built lazily: the SDK refuses to construct without a key
        if self._client is None:
            options: dict[str, Any] = {"api_key": self.config.api_key, "max_retries": 0}
            if self.config.base_url:
                options["base_url"] = self.config.base_url
            if self.config.timeout is not None:
                options["timeout"] = self.config.timeout
            if self._http_client is not None:
                options["http_client"] = self._http_client
            self._client = Anthropic(**options)
        return self._client

    def close(self) -> None:
        # An injected http_client belongs to the caller
        if self._client is not None and self._http_client is None:
            self._client.close()
        self._client = None

    def _send(self, system_prompt: str, history: list[Message], tool_choice: ToolChoice) -> ProviderTurn:
        request_params: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "system": system_prompt,
            "messages": [self._serialize_message(message) for message in history],
        }
        if self.tools:
            request_params["tools"] = self.format_tools(self.tools)
            request_params["tool_choice"] = self.format_tool_choice(tool_choice)

        try:
            response = self.client.messages.create(**request_params)
        except APIStatusError as e:
            raise ProviderError(f"{e.status_code} {e.message}") from e
        except APIError as e:
            raise ProviderError(str(e)) from e

        usage = None
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )

        return ProviderTurn(
            messages=self._convert_content_blocks(response.content),
            ok=True,
            usage=usage,
            stop_reason=response.stop_reason,
        )

    def _convert_content_blocks(self, anthropic_content: list[AnthropicContentBlock]) -> list[Message]:
        """Convert Anthropic content blocks to one assistant message per block."""
        messages: list[Message] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)

            if block_dict.get("type") == "text":
                messages.append(Message(role=Role.ASSISTANT, content=[TextBlock.model_validate(block_dict)]))
            elif block_dict.get("type") == "tool_use":
                messages.append(Message(role=Role.ASSISTANT, content=[ToolUseBlock.model_validate(block_dict)]))
            else:
                logger.warning(f"Unknown content block type: {block_dict.get('type')}")

        return messages

    def _serialize_message(self, message: Message) -> dict[str, Any]:
        role = "assistant" if message.role == Role.ASSISTANT else "user"
        if isinstance(message.content, str):
            return {"role": role, "content": message.content}
        return {"role": role, "content": [self._serialize_block(block) for block in message.content]}

    def _serialize_block(self, block: TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock) -> dict[str, Any]:
        if isinstance(block, ImageBlock):
            if block.data is not None:
                source = {"type": "base64", "media_type": block.media_type, "data": block.data}
            else:
                source = {"type": "url", "url": block.url}
            return {"type": "image", "source": source}
        return block.model_dump()

    def build_tool_result_message(self, tool_call_id: str, result: str, is_error: bool = False) -> Message:
        return Message(
            role=Role.USER,
            content=[ToolResultBlock(tool_use_id=tool_call_id, content=result, is_error=is_error)],
        )

    def format_tools(self, tools: Sequence[ToolDescriptor]) -> list[dict[str, Any]]:
        anthropic_tools = []
        for i, tool in enumerate(tools):
            # Cache control on the last tool caches every tool definition
            cache_control = CacheControl() if i == len(tools) - 1 else None
            anthropic_tools.append(
                AnthropicTool(
                    name=tool.name,
                    description=tool.description,
                    input_schema=tool.input_schema,
                    cache_control=cache_control,
                ).model_dump(exclude_none=True)
            )
        return anthropic_tools

    def format_tool_choice(self, tool_choice: ToolChoice) -> dict[str, str]:
        if tool_choice == "auto":
            return {"type": "auto"}
        return {"type": "tool", "name": tool_choice}
