"""
Configuration loader for the nokode server.

Settings come from an optional YAML file and are then overridden by
environment variables (a `.env` file is loaded by the entry point).
Sensitive values like API keys are never stored in the YAML file;
providers read them from the environment variable named by their
`api_key_env` setting.
"""

import copy
import os
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 3001,
    },
    "provider": "anthropic",
    "providers": {
        "anthropic": {
            "model": "claude-3-haiku-20240307",
            "api_key_env": "ANTHROPIC_API_KEY",
        },
        "openai": {
            "model": "gpt-4-turbo-preview",
            "api_key_env": "OPENAI_API_KEY",
            "base_url": "https://api.openai.com/v1",
        },
    },
    "agent": {
        "max_steps": 10,
        "max_tokens": 50000,
        "reasoning_max_tokens": 8000,
    },
    "paths": {
        "prompt": "prompt.md",
        "memory": "memory.md",
        "database": "database.db",
    },
    "debug": False,
}

# env var -> (section, key); a section of None means a top-level key
ENV_OVERRIDES = {
    "PORT": ("server", "port"),
    "HOST": ("server", "host"),
    "LLM_PROVIDER": (None, "provider"),
    "NOKODE_PROMPT_PATH": ("paths", "prompt"),
    "NOKODE_MEMORY_PATH": ("paths", "memory"),
    "NOKODE_DATABASE_PATH": ("paths", "database"),
}

MODEL_ENV_OVERRIDES = {
    "ANTHROPIC_MODEL": "anthropic",
    "OPENAI_MODEL": "openai",
}

TRUTHY = {"1", "true", "yes", "on"}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def apply_env_overrides(cfg: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Overlay environment variables on top of a configuration dictionary.

    Args:
        cfg: Configuration dictionary to update in place.
        environ: Mapping to read variables from (defaults to os.environ).

    Returns:
        The updated configuration dictionary.
    """
    env = os.environ if environ is None else environ

    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if not value:
            continue
        if section is None:
            cfg[key] = value
        else:
            cfg.setdefault(section, {})[key] = value

    for var, provider_name in MODEL_ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            cfg.setdefault("providers", {}).setdefault(provider_name, {})["model"] = value

    if "DEBUG" in env:
        cfg["debug"] = env["DEBUG"].strip().lower() in TRUTHY

    cfg["server"]["port"] = int(cfg["server"]["port"])
    return cfg


def load_app_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Load the application configuration.

    Defaults are merged with the YAML file at `path` (when given) and the
    result is overridden by environment variables.

    Args:
        path: Optional path to a YAML configuration file.
        environ: Optional environment mapping, used instead of os.environ.

    Returns:
        A dictionary representing the configuration.

    Raises:
        FileNotFoundError: If an explicit config file does not exist.
        ValueError: If the top-level configuration is not a mapping.
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    if path is not None:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found at: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError("Top-level configuration must be a mapping/dictionary.")

        _merge(cfg, data)

    return apply_env_overrides(cfg, environ)
