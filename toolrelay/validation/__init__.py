"""
toolrelay validation module.

This module provides configuration validation and schema enforcement.
"""

from toolrelay.validation.config import Config, ConfigError, ToolRelayConfig

__all__ = ["Config", "ConfigError", "ToolRelayConfig"]
