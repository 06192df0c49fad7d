"""Base types and definitions for tools."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from cmsai.models.llm import ToolDescriptor


class ToolErrorKind(StrEnum):
    """Why a tool execution failed."""

    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"
    UNKNOWN_TOOL = "unknown_tool"
    SEARCH_ERROR = "search_error"
    HANDLER_ERROR = "handler_error"


@dataclass(frozen=True)
class ToolOutcome:
    """Result of executing a tool: the text for the model plus an error kind."""

    text: str
    error_kind: ToolErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, text: str) -> "ToolOutcome":
        return cls(text=text)

    @classmethod
    def failure(cls, kind: ToolErrorKind, text: str) -> "ToolOutcome":
        return cls(text=text, error_kind=kind)

    def render(self) -> str:
        """Text folded back into the conversation for the model to read."""
        return self.text


ToolHandler = Callable[[BaseModel], ToolOutcome]
CustomToolHandler = Callable[[dict[str, Any]], str]


def clean_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Inline ``$defs`` references and drop pydantic titles.

    Vendors disagree on ``$ref`` support, so every tool schema is sent
    self-contained.
    """
    definitions = schema.get("$defs", {})

    def resolve(node: Any) -> Any:
        if isinstance(node, dict):
            if "$ref" in node:
                name = node["$ref"].rsplit("/", 1)[-1]
                return resolve(definitions[name])
            return {
                key: resolve(value)
                for key, value in node.items()
                if key != "$defs" and not (key == "title" and isinstance(value, str))
            }
        if isinstance(node, list):
            return [resolve(item) for item in node]
        return node

    return resolve(schema)


@dataclass
class ToolDefinition:
    """Definition of a tool available to the model."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return clean_schema(self.input_schema_class.model_json_schema())

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(name=self.name, description=self.description, input_schema=self.get_json_schema())
