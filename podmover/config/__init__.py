"""Configuration loading and validation for podmover."""

from podmover.config.loader import DEFAULT_CONFIG, load_config
from podmover.config.validator import ValidationError, validate_config

__all__ = ["DEFAULT_CONFIG", "load_config", "ValidationError", "validate_config"]
