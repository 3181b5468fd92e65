"""
Conversation logger for Skald.

Logs the events of a conversation run to a JSONL file for debugging and
analysis. The log is append-only and never read back by Skald itself.
"""

import datetime as _datetime
import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

import skald.api.types as api_types
import skald.config.settings as settings_module


class ConversationLogger:
    """
    Logs conversation events to a JSONL file.

    Each line in the file is a JSON object representing an event:
    - session_start: Session metadata (model, provider, timestamp)
    - user_message: User's input
    - assistant_message: Assistant's response (content blocks and stop reason)
    - tool_call: Tool invocation request
    - tool_result: Result of tool execution
    - usage: Token usage of one response
    - error: Error events
    - session_end: Session completion

    Usage:
        logger = ConversationLogger(log_dir="/tmp", provider="anthropic", model="claude")
        logger.log_user_message("Hello")
        logger.log_assistant_message(response.to_message())
        logger.close()
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        provider: str = "unknown",
        model: str = "unknown",
        enabled: bool = True,
    ) -> None:
        """
        Initialize the conversation logger.

        Args:
            log_dir: Directory for log files (default: /tmp/skald-logs).
            log_file: Explicit log file path (overrides log_dir + auto name).
            private_mode: If True, set log directory to drwx------ (0o700).
            provider: Model provider name.
            model: Model name.
            enabled: Whether logging is enabled.
        """
        self._enabled = enabled
        self._provider = provider
        self._model = model
        self._file: _typing.TextIO | None = None
        self._file_path: _pathlib.Path | None = None
        self._session_id = _datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        self._event_count = 0

        if not enabled:
            return

        if log_file:
            self._file_path = _pathlib.Path(log_file)
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            base_dir = _pathlib.Path(log_dir) if log_dir else _pathlib.Path("/tmp/skald-logs")
            base_dir.mkdir(parents=True, exist_ok=True)

            # Lock down permissions if private_mode (drwx------)
            if private_mode:
                _os.chmod(base_dir, 0o700)

            self._file_path = base_dir / f"skald_{self._session_id}.jsonl"

        # Held as instance state, closed in close()
        self._file = open(self._file_path, "w", encoding="utf-8")  # noqa: SIM115

        self._write_event(
            "session_start",
            {
                "session_id": self._session_id,
                "provider": provider,
                "model": model,
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: settings_module.Settings,
        *,
        provider: str = "unknown",
    ) -> "ConversationLogger":
        """Create a logger configured by the logging section of settings."""
        return cls(
            log_dir=settings.logs_dir,
            log_file=settings.logging.file,
            private_mode=settings.logging.private,
            provider=provider,
            model=settings.model,
            enabled=settings.logging.enabled,
        )

    def _write_event(
        self,
        event_type: str,
        data: dict[str, _typing.Any],
    ) -> None:
        """Write an event to the log file."""
        if not self._enabled or not self._file:
            return

        self._event_count += 1
        event = {
            "timestamp": _datetime.datetime.now().isoformat(),
            "event_number": self._event_count,
            "event_type": event_type,
            **data,
        }

        try:
            self._file.write(_json.dumps(event, default=str) + "\n")
            self._file.flush()  # Ensure immediate write for crash safety
        except OSError:
            # Logging must never break the run
            pass

    def log_system_prompt(self, prompt: str) -> None:
        """Log the system prompt."""
        self._write_event("system_prompt", {"content": prompt})

    def log_user_message(self, content: str) -> None:
        """Log a user message."""
        self._write_event("user_message", {"content": content})

    def log_assistant_message(
        self,
        message: api_types.Message,
        stop_reason: api_types.StopReason | None = None,
    ) -> None:
        """Log an assistant message with its full content blocks."""
        self._write_event(
            "assistant_message",
            {
                "content": message.first_text(),
                "blocks": [block.to_dict() for block in message.content],
                "stop_reason": stop_reason.value if stop_reason else None,
            },
        )

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: _typing.Any,
        tool_id: str | None = None,
    ) -> None:
        """Log a tool call request."""
        self._write_event(
            "tool_call",
            {
                "tool_name": tool_name,
                "tool_input": tool_input,
                "tool_id": tool_id,
            },
        )

    def log_tool_result(
        self,
        tool_name: str,
        success: bool,
        output: str | None = None,
        error: str | None = None,
        tool_id: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log a tool execution result."""
        data: dict[str, _typing.Any] = {
            "tool_name": tool_name,
            "success": success,
            "output": output,
            "error": error,
            "tool_id": tool_id,
        }
        if duration_ms is not None:
            data["duration_ms"] = round(duration_ms, 2)
        self._write_event("tool_result", data)

    def log_usage(self, usage: api_types.Usage) -> None:
        """Log token usage."""
        self._write_event(
            "usage",
            {**usage.to_dict(), "total_tokens": usage.total_tokens},
        )

    def log_error(
        self,
        error: str,
        context: str | None = None,
        kind: str | None = None,
    ) -> None:
        """Log an error event."""
        data: dict[str, _typing.Any] = {"error": error, "context": context}
        if kind is not None:
            data["kind"] = kind
        self._write_event("error", data)

    def log_tool_metrics(self, summary: dict[str, _typing.Any]) -> None:
        """Log a MetricsCollector summary at the end of a run."""
        self._write_event("tool_metrics", {"summary": summary})

    def log_event(self, event_type: str, **kwargs: _typing.Any) -> None:
        """Log a generic event with arbitrary data.

        Use this for events that don't have a dedicated logging method.

        Args:
            event_type: The event type string (e.g., "run_aborted").
            **kwargs: Arbitrary key-value pairs to include in the event.
        """
        self._write_event(event_type, dict(kwargs))

    @property
    def file_path(self) -> _pathlib.Path | None:
        """Path to the log file, or None when disabled."""
        return self._file_path

    @property
    def enabled(self) -> bool:
        """Check if logging is enabled."""
        return self._enabled

    @property
    def event_count(self) -> int:
        return self._event_count

    def close(self) -> None:
        """Close the log file."""
        if not self._enabled or not self._file:
            return

        self._write_event("session_end", {"total_events": self._event_count})

        try:
            self._file.close()
        except OSError:
            pass
        finally:
            self._file = None

    def __enter__(self) -> "ConversationLogger":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
