"""
Base classes for the tool system.

Tools are the model's way of acting on the local machine. Each tool has a
name, description, a pydantic model describing its input, and an execute
method. The conversation core treats execute() as opaque: whatever side
effects a tool has happen there and nowhere else.
"""

from __future__ import annotations

import abc as _abc
import dataclasses as _dataclasses
import datetime as _datetime
import inspect as _inspect
import typing as _typing

import pydantic as _pydantic

import skald.api.types as api_types


@_dataclasses.dataclass
class ToolOutcome:
    """
    Result of executing a tool.

    An outcome with is_error=True is still a normal result: it is reported
    back to the model, which may recover. Tools signal failures they cannot
    report this way by raising.
    """

    is_error: bool
    content: str

    @classmethod
    def ok(cls, content: str) -> ToolOutcome:
        return cls(is_error=False, content=content)

    @classmethod
    def error(cls, content: str) -> ToolOutcome:
        return cls(is_error=True, content=content)

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {"is_error": self.is_error, "content": self.content}


@_dataclasses.dataclass
class ToolMetrics:
    """
    Metrics for a single tool's usage.

    Tracks call counts, durations, and success rates for observability.
    """

    tool_name: str
    call_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_duration_ms: float = 0.0
    last_used: str | None = None  # ISO timestamp

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage (0.0 to 100.0)."""
        if self.call_count == 0:
            return 0.0
        return (self.success_count / self.call_count) * 100.0

    @property
    def average_duration_ms(self) -> float:
        if self.call_count == 0:
            return 0.0
        return self.total_duration_ms / self.call_count

    def record_call(self, success: bool, duration_ms: float) -> None:
        """
        Record a tool call.

        Args:
            success: Whether the call produced a non-error outcome
            duration_ms: How long the call took in milliseconds
        """
        self.call_count += 1
        if success:
            self.success_count += 1
        else:
            self.failure_count += 1
        self.total_duration_ms += duration_ms
        self.last_used = _datetime.datetime.now(_datetime.UTC).isoformat()

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "tool_name": self.tool_name,
            "call_count": self.call_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "total_duration_ms": self.total_duration_ms,
            "average_duration_ms": self.average_duration_ms,
            "success_rate": self.success_rate,
            "last_used": self.last_used,
        }


class MetricsCollector:
    """Collects tool metrics across a run. Always on."""

    def __init__(self) -> None:
        self._metrics: dict[str, ToolMetrics] = {}

    def record(self, tool_name: str, success: bool, duration_ms: float) -> None:
        if tool_name not in self._metrics:
            self._metrics[tool_name] = ToolMetrics(tool_name=tool_name)
        self._metrics[tool_name].record_call(success, duration_ms)

    def get(self, tool_name: str) -> ToolMetrics | None:
        """Get metrics for a specific tool."""
        return self._metrics.get(tool_name)

    def all(self) -> list[ToolMetrics]:
        """Get all tool metrics, sorted by call count (descending)."""
        return sorted(self._metrics.values(), key=lambda m: m.call_count, reverse=True)

    def summary(self) -> dict[str, _typing.Any]:
        """Get a summary of all metrics."""
        total_calls = sum(m.call_count for m in self._metrics.values())
        total_success = sum(m.success_count for m in self._metrics.values())
        total_duration = sum(m.total_duration_ms for m in self._metrics.values())

        return {
            "total_calls": total_calls,
            "total_success": total_success,
            "total_failures": total_calls - total_success,
            "success_rate": (total_success / total_calls * 100.0) if total_calls else 0.0,
            "total_duration_ms": total_duration,
            "tools_used": len(self._metrics),
        }


class Tool(_abc.ABC):
    """
    Abstract base class for all tools.

    Subclasses must implement:
    - name (property): The tool's identifier (used by the model)
    - description (property): Human-readable description for the model
    - input_model (property): pydantic model the raw input is validated into
    - execute(): The actual tool implementation
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Tool name (e.g., 'read_file')."""
        ...

    @property
    @_abc.abstractmethod
    def description(self) -> str:
        """Human-readable description for the model."""
        ...

    @property
    @_abc.abstractmethod
    def input_model(self) -> type[_pydantic.BaseModel]:
        """pydantic model describing the tool's expected input shape."""
        ...

    @_abc.abstractmethod
    async def execute(self, input: _typing.Any) -> ToolOutcome:
        """
        Execute the tool with validated input.

        Args:
            input: An instance of input_model

        Returns:
            ToolOutcome with the text to report back to the model
        """
        ...

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        """JSON schema for tool input, derived from input_model."""
        return self.input_model.model_json_schema()

    def parse_input(self, raw: _typing.Any) -> _pydantic.BaseModel:
        """
        Validate the model's raw structured input into input_model.

        Raises:
            pydantic.ValidationError: If the input does not match the shape
        """
        return self.input_model.model_validate(raw)

    def to_definition(self) -> api_types.ToolDefinition:
        """Tool definition sent to the model provider."""
        return api_types.ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"


ToolFunction = _typing.Callable[
    [_typing.Any],
    "ToolOutcome | str | _typing.Awaitable[ToolOutcome | str]",
]


class FunctionTool(Tool):
    """
    Tool backed by a plain function.

    The function receives the validated input model instance and may be sync
    or async. Returning a bare string is shorthand for a successful outcome.

    Usage:
        class EchoInput(pydantic.BaseModel):
            text: str

        echo = FunctionTool("echo", "Echo text back", EchoInput, lambda i: i.text)
    """

    def __init__(
        self,
        name: str,
        description: str,
        input_model: type[_pydantic.BaseModel],
        func: ToolFunction,
    ) -> None:
        self._name = name
        self._description = description
        self._input_model = input_model
        self._func = func

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_model(self) -> type[_pydantic.BaseModel]:
        return self._input_model

    async def execute(self, input: _typing.Any) -> ToolOutcome:
        result = self._func(input)
        if _inspect.isawaitable(result):
            result = await result
        if isinstance(result, str):
            return ToolOutcome.ok(result)
        return result
