"""Schema validation for podmover configuration."""

import re
from typing import Any, Dict, List

import jsonschema

# Lowercase RFC 1123 label characters
_NAME_PATTERN = "^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"

CONFIG_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "template": {
            "type": "object",
            "additionalProperties": False,
            "required": ["containerName", "image", "hostnameLabel"],
            "properties": {
                "containerName": {"type": "string", "pattern": _NAME_PATTERN, "maxLength": 63},
                "image": {"type": "string", "minLength": 1, "pattern": "^\\S+$"},
                "hostnameLabel": {"type": "string", "minLength": 1},
            },
        },
        "naming": {
            "type": "object",
            "additionalProperties": False,
            "required": ["marker", "fallbackPodName"],
            "properties": {
                "marker": {"type": "string", "pattern": "^[a-z0-9][-a-z0-9]*-$"},
                "fallbackPodName": {"type": "string", "pattern": _NAME_PATTERN},
            },
        },
        "policy": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "onDeleteFailure": {"type": "string", "enum": ["continue", "abort"]},
                "createRetries": {"type": "integer", "minimum": 0, "maximum": 10},
                "retryDelay": {"type": "number", "minimum": 0},
                "waitForDeletion": {"type": "boolean"},
                "deletionTimeout": {"type": "number", "minimum": 0},
                "verifyTimeout": {"type": "number", "minimum": 0},
            },
        },
    },
}


class ValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.errors = errors or []


def validate_config(config: Dict[str, Any]) -> bool:
    """Validate a configuration against the schema.

    Args:
        config: The configuration dictionary.

    Returns:
        True if validation passes.

    Raises:
        ValidationError: If validation fails.
    """
    try:
        jsonschema.validate(instance=config, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ValidationError(f"Schema validation failed: {e.message}", [str(e)])

    errors = _semantic_validation(config)
    if errors:
        raise ValidationError("Semantic validation failed", errors)

    return True


def _semantic_validation(config: Dict[str, Any]) -> List[str]:
    """Checks the schema cannot express.

    Args:
        config: The configuration dictionary.

    Returns:
        List of validation error messages.
    """
    errors = []

    image = config.get("template", {}).get("image")
    if image and not _is_pinned(image):
        errors.append(f"Image '{image}' must be pinned to a tag or digest")

    policy = config.get("policy", {})
    if policy.get("waitForDeletion") and not policy.get("deletionTimeout"):
        errors.append("waitForDeletion requires a positive deletionTimeout")

    return errors


def _is_pinned(image: str) -> bool:
    """Check that an image reference carries a tag or digest."""
    if "@" in image:
        return True
    last = image.rsplit("/", 1)[-1]
    return bool(re.search(r":[\w][\w.-]*$", last))
