"""Configuration loader for podmover.

A configuration file is an optional YAML document overriding any of the
built-in defaults::

    template:
      containerName: my-container
      image: nginx:1.14.2
      hostnameLabel: kubernetes.io/hostname
    naming:
      marker: movido-
      fallbackPodName: pod-teste
    policy:
      onDeleteFailure: continue
      createRetries: 0
      retryDelay: 2
      waitForDeletion: false
      deletionTimeout: 60
      verifyTimeout: 0
"""

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from podmover.config.validator import validate_config


DEFAULT_CONFIG: Dict[str, Any] = {
    "template": {
        "containerName": "my-container",
        "image": "nginx:1.14.2",
        "hostnameLabel": "kubernetes.io/hostname",
    },
    "naming": {
        "marker": "movido-",
        "fallbackPodName": "pod-teste",
    },
    "policy": {
        "onDeleteFailure": "continue",
        "createRetries": 0,
        "retryDelay": 2,
        "waitForDeletion": False,
        "deletionTimeout": 60,
        "verifyTimeout": 0,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the relocation configuration.

    Args:
        config_path: Path to a YAML file. When None, the defaults are used.

    Returns:
        The defaults deep-merged with the file's contents, validated.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the file is not a YAML mapping.
        ValidationError: If the merged configuration is invalid.
    """
    if config_path is None:
        config = deepcopy(DEFAULT_CONFIG)
        validate_config(config)
        return config

    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    config = merge_configs(DEFAULT_CONFIG, data)
    validate_config(config)
    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Later configs override earlier ones for conflicting keys.
    """
    result: Dict[str, Any] = {}
    for config in configs:
        result = _deep_merge(result, config)
    return result


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result
