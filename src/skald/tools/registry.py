"""
Tool registry for managing available tools.

The registry provides a central place to register, look up, and list the
tools offered to the model during a run.
"""

from __future__ import annotations

import typing as _typing

import skald.api.types as api_types
import skald.tools.base as base


class ToolRegistry:
    """
    Registry for tool instances.

    Tools are registered by name and looked up for execution. The registry
    also produces the tool definitions handed to the model provider.
    """

    def __init__(self, tools: _typing.Iterable[base.Tool] = ()) -> None:
        self._tools: dict[str, base.Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: base.Tool) -> None:
        """
        Register a tool instance.

        Args:
            tool: Tool instance to register

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> base.Tool | None:
        """
        Get a tool by name.

        Args:
            name: Tool name (case-sensitive)

        Returns:
            Tool instance or None if not found
        """
        return self._tools.get(name)

    def get_or_raise(self, name: str) -> base.Tool:
        """
        Get a tool by name, raising if not found.

        Raises:
            KeyError: If tool is not found
        """
        tool = self._tools.get(name)
        if tool is None:
            available = ", ".join(self.list_names())
            raise KeyError(f"Tool '{name}' not found. Available: {available}")
        return tool

    def list_tools(self) -> list[base.Tool]:
        """List all registered tools, sorted by name."""
        return sorted(self._tools.values(), key=lambda t: t.name)

    def list_names(self) -> list[str]:
        """Sorted list of tool names."""
        return sorted(self._tools.keys())

    def to_definitions(self) -> list[api_types.ToolDefinition]:
        """Tool definitions for the model provider, sorted by name."""
        return [tool.to_definition() for tool in self.list_tools()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> _typing.Iterator[base.Tool]:
        return iter(self.list_tools())
