"""Configuration type definitions for Skald settings.

This module defines the Pydantic models used to represent configuration
sections nested within the main Settings class:

- ModelsConfig: default model identifier
- BehaviorConfig: max_tokens, temperature, system_prompt, step and result limits
- LoggingConfig: enabled, dir, private, file

All types use `extra="allow"` to preserve unknown fields, so a caller can
audit its configuration for typos with `get_extra_fields()`.
"""

import typing as _typing

import pydantic as _pydantic

import skald.constants as _constants

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    Unknown fields are preserved rather than silently dropped.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Return fields that were provided but not in the schema.

        Returns:
            Dict of field_name → value for all unrecognized fields.
        """
        return dict(self.model_extra) if self.model_extra else {}

    def has_extra_fields(self) -> bool:
        """Check if this config has any unrecognized fields."""
        return bool(self.model_extra)


# =============================================================================
# Model Settings
# =============================================================================


class ModelsConfig(ConfigBase):
    """
    Model-related configuration.

    Env: SKALD_MODELS__DEFAULT
    """

    default: str = _constants.DEFAULT_MODEL
    """Model identifier handed to providers."""


# =============================================================================
# Behavior Settings
# =============================================================================


class BehaviorConfig(ConfigBase):
    """
    Conversation behavior settings.

    Env: SKALD_BEHAVIOR__*
    """

    max_tokens: int = _pydantic.Field(default=_constants.DEFAULT_MAX_TOKENS, ge=1, le=200000)
    """Maximum tokens per model response."""

    temperature: float | None = _pydantic.Field(default=None, ge=0.0, le=2.0)
    """Sampling temperature. None leaves the provider default."""

    system_prompt: str = ""
    """System prompt sent with every request. Empty means none."""

    max_steps: int = _pydantic.Field(default=_constants.DEFAULT_MAX_STEPS, ge=1)
    """Maximum node steps per run before the run is aborted."""

    tool_result_max_chars: int = _pydantic.Field(
        default=_constants.DEFAULT_TOOL_RESULT_MAX_CHARS, ge=1
    )
    """Tool result text longer than this is truncated in the conversation."""


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Conversation log settings.

    Env: SKALD_LOGGING__*
    """

    enabled: bool = False
    """Write a JSONL conversation log."""

    dir: str | None = None
    """Log directory. None = use default."""

    private: bool = True
    """Lock log directory to owner-only (drwx------)."""

    file: str | None = None
    """Explicit log file path (overrides dir + auto filename)."""
