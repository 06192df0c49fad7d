"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Role(StrEnum):
    """Canonical conversation roles.

    Adapters decide which role carries a tool result for their vendor.
    """

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


# Content block types
class TextBlock(BaseModel):
    """Text content block."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    """Image attachment, either inline base64 data or a remote URL."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["image"] = "image"
    media_type: str = "image/jpeg"
    data: str | None = None
    url: str | None = None

    @property
    def data_url(self) -> str:
        if self.data is not None:
            return f"data:{self.media_type};base64,{self.data}"
        return self.url or ""


class ToolUseBlock(BaseModel):
    """Tool use content block."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """Tool result content block."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


ContentBlock = Annotated[TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock, Field(discriminator="type")]


class Message(BaseModel):
    """A single conversation turn. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str | list[ContentBlock]

    @property
    def blocks(self) -> list[TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock]:
        """Content as a block list, wrapping plain text in a TextBlock."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)] if self.content else []
        return list(self.content)


class ToolCall(BaseModel):
    """A model-requested tool invocation."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolDescriptor(BaseModel):
    """Canonical tool declaration, translated per vendor by the adapters."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class LLMUsage:
    """Token usage information from an LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: "LLMUsage | None") -> None:
        if other is None:
            return
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens


@dataclass
class ProviderTurn:
    """Result of one adapter round-trip.

    ``messages`` holds the assistant messages in the order the vendor
    returned them; it is empty whenever ``ok`` is False.
    """

    messages: list[Message] = field(default_factory=list)
    ok: bool = True
    error: str | None = None
    usage: LLMUsage | None = None
    stop_reason: str | None = None

    @classmethod
    def failure(cls, error: str) -> "ProviderTurn":
        return cls(messages=[], ok=False, error=error)
