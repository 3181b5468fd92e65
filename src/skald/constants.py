"""
Shared constants for Skald.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Model defaults
DEFAULT_MODEL = "claude-3-7-sonnet-20250219"
"""Default model identifier handed to providers."""

DEFAULT_MAX_TOKENS = 8192
"""Default maximum tokens for model responses."""

DEFAULT_MAX_STEPS = 100
"""Default maximum node steps per run (guards against endless tool loops)."""

# Tool result handling
DEFAULT_TOOL_RESULT_MAX_CHARS = 50_000
"""Maximum characters for a tool result in the conversation (~12,500 tokens).

Tool output exceeding this limit is truncated before being added to the
conversation history. The untruncated text is still kept in the run's
tool output map.
"""

TOOL_ERROR_PREFIX = "Error: "
"""Prefix marking a tool result whose outcome was an error."""
