"""
Configuration module for Skald.

Uses pydantic-settings for environment variable loading.
"""

from skald.config.settings import Settings
from skald.config.types import BehaviorConfig, ConfigBase, LoggingConfig, ModelsConfig

__all__ = ["BehaviorConfig", "ConfigBase", "LoggingConfig", "ModelsConfig", "Settings"]
