"""Tools the model can call during a chat turn."""

from cmsai.tools.base import ToolErrorKind, ToolOutcome
from cmsai.tools.registry import ToolsRegistry

__all__ = ["ToolErrorKind", "ToolOutcome", "ToolsRegistry"]
