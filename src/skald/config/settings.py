"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with SKALD_ prefix
3. .env file (if SKALD_ENV_FILE points at one)

Nested config uses double underscore delimiter:
  SKALD_BEHAVIOR__MAX_TOKENS=16384
  SKALD_LOGGING__ENABLED=true
"""

import getpass as _getpass
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import skald.config.types as types


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    Only an explicit SKALD_ENV_FILE is honoured. If it is set but the file
    does not exist, no .env is loaded rather than falling back silently.
    """
    if env_file := _os.environ.get("SKALD_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def _get_username() -> str:
    """Get the current username for directory naming."""
    try:
        return _getpass.getuser()
    except Exception:
        return "unknown"


class Settings(_pydantic_settings.BaseSettings):
    """
    Skald configuration settings.

    All settings can be overridden via environment variables with SKALD_ prefix.
    For nested config, use double underscore: SKALD_BEHAVIOR__MAX_TOKENS=16384
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="SKALD_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # SKALD_BEHAVIOR__MAX_TOKENS
        extra="allow",
    )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation and for reproducing issues without .env
        interference.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Nested config sections
    # =========================================================================

    models: types.ModelsConfig = _pydantic.Field(default_factory=types.ModelsConfig)
    """Model configuration (default model)."""

    behavior: types.BehaviorConfig = _pydantic.Field(
        default_factory=types.BehaviorConfig
    )
    """Behavior settings (max_tokens, temperature, limits)."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Conversation log settings."""

    # =========================================================================
    # Property aliases to nested config
    # =========================================================================

    @property
    def model(self) -> str:
        """Default model (alias to models.default)."""
        return self.models.default

    @model.setter
    def model(self, value: str) -> None:
        self.models.default = value

    @property
    def max_tokens(self) -> int:
        """Max tokens (alias to behavior.max_tokens)."""
        return self.behavior.max_tokens

    @max_tokens.setter
    def max_tokens(self, value: int) -> None:
        self.behavior.max_tokens = value

    @property
    def logs_dir(self) -> _pathlib.Path:
        """Directory for conversation log files.

        Default: /tmp/skald-logs-{username}
        The username suffix prevents accidental log sharing in multi-user systems.
        """
        if self.logging.dir:
            return _pathlib.Path(self.logging.dir)
        return _pathlib.Path(f"/tmp/skald-logs-{_get_username()}")

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Get unknown fields at the top level of Settings."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Collect unknown fields from Settings and its sections.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"behavior.max_tokns": 100}
        """
        result = self.get_extra_fields()
        for field_name in ["models", "behavior", "logging"]:
            section: types.ConfigBase = getattr(self, field_name)
            for key, value in section.get_extra_fields().items():
                result[f"{field_name}.{key}"] = value
        return result

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert settings to dictionary (for JSON output)."""
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.behavior.temperature,
            "max_steps": self.behavior.max_steps,
            "tool_result_max_chars": self.behavior.tool_result_max_chars,
            "log_conversations": self.logging.enabled,
            "log_dir": str(self.logs_dir),
            "log_file": self.logging.file,
        }
