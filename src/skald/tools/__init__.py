"""
Tool system for Skald.

Tools are the interface between the model and the local machine. Each tool
has an input model, description, and execute method; concrete tool bodies
are supplied by the application.

Usage:
    from skald.tools import FunctionTool, ToolRegistry

    registry = ToolRegistry([FunctionTool("echo", "Echo text", EchoInput, echo)])
    tool = registry.get_or_raise("echo")
"""

from skald.tools.base import (
    FunctionTool,
    MetricsCollector,
    Tool,
    ToolMetrics,
    ToolOutcome,
)
from skald.tools.registry import ToolRegistry

__all__ = [
    # Base classes
    "FunctionTool",
    "Tool",
    "ToolOutcome",
    # Metrics
    "MetricsCollector",
    "ToolMetrics",
    # Registry
    "ToolRegistry",
]
