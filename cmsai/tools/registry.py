"""Tools registry: tool declarations plus the executor."""

from typing import Any

import httpx
from pydantic import ValidationError

from cmsai.models.llm import ToolDescriptor
from cmsai.tools.base import CustomToolHandler, ToolDefinition, ToolErrorKind, ToolOutcome
from cmsai.tools.files import FileTools, create_file_tools
from cmsai.tools.search import TAVILY_SEARCH_URL, TavilySearch, create_search_tool
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "input"
    return f"{location}: {first.get('msg', 'invalid value')}"


class ToolsRegistry:
    """Registry for the tools the model may call.

    Built once per session and handed to both the adapter (declarations)
    and the orchestrator (execution).
    """

    def __init__(
        self,
        workspace_dir: str = ".",
        tavily_api_key: str = "",
        tavily_url: str = TAVILY_SEARCH_URL,
        http_client: httpx.Client | None = None,
    ):
        """Initialize tools registry with the default tool set."""
        self.file_tools = FileTools(workspace_dir)
        self.search = TavilySearch(tavily_api_key, url=tavily_url, http_client=http_client)
        self._tools: dict[str, ToolDefinition] = {}
        self._custom: dict[str, tuple[CustomToolHandler, ToolDescriptor | None]] = {}
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        for tool in [*create_file_tools(self.file_tools), create_search_tool(self.search)]:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    def register_custom(
        self,
        name: str,
        handler: CustomToolHandler,
        description: str | None = None,
        input_schema: dict[str, Any] | None = None,
    ) -> None:
        """Register a handler for a tool name the built-in set does not know.

        With a description the tool is also declared to the model; without
        one it is only resolved when the model calls it by name.
        """
        descriptor = None
        if description is not None:
            descriptor = ToolDescriptor(
                name=name,
                description=description,
                input_schema=input_schema or {"type": "object", "properties": {}},
            )
        self._custom[name] = (handler, descriptor)

    def descriptors(self) -> list[ToolDescriptor]:
        """Canonical declarations of every declared tool."""
        declared = [tool.descriptor() for tool in self._tools.values()]
        declared.extend(descriptor for _, descriptor in self._custom.values() if descriptor is not None)
        return declared

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return [*self._tools, *self._custom]

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools or name in self._custom

    def execute(self, name: str, tool_input: dict[str, Any] | None) -> ToolOutcome:
        """Run a tool. Never raises: every failure becomes a ToolOutcome."""
        raw_input = tool_input if isinstance(tool_input, dict) else {}
        logger.debug(f"Executing tool: {name} with input: {raw_input}")

        tool = self._tools.get(name)
        if tool is not None:
            try:
                params = tool.parse_input(raw_input)
            except ValidationError as e:
                logger.warning(f"Invalid input for {name}: {e}")
                return ToolOutcome.failure(
                    ToolErrorKind.INVALID_INPUT,
                    f"Invalid input for {name} tool: {_describe_validation_error(e)}",
                )
            try:
                outcome = tool.handler(params)
            except Exception as e:
                logger.error(f"Tool {name} failed: {e}", exc_info=True)
                return ToolOutcome.failure(ToolErrorKind.HANDLER_ERROR, f"Error executing tool {name}: {e}")
            logger.debug(f"Tool {name} finished ok={outcome.ok}: {outcome.text[:100]}")
            return outcome

        if name in self._custom:
            handler, _ = self._custom[name]
            try:
                return ToolOutcome.success(str(handler(raw_input)))
            except Exception as e:
                logger.error(f"Custom tool {name} failed: {e}", exc_info=True)
                return ToolOutcome.failure(ToolErrorKind.HANDLER_ERROR, f"Error executing tool {name}: {e}")

        logger.error(f"Unknown tool requested: {name}")
        return ToolOutcome.failure(ToolErrorKind.UNKNOWN_TOOL, f"Error: Tool not found: {name}")

    def close(self) -> None:
        self.search.close()
