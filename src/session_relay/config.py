"""Configuration loader with YAML and environment variable support."""

import os
from pathlib import Path
from typing import Any

import yaml


# Default configuration values
DEFAULTS = {
    "server": {
        "host": "127.0.0.1",
        "port": 5060,
        "debug": False,
    },
    "logging": {
        "level": "INFO",
        "file": "logs/app.log",
        "max_bytes": 10_000_000,
        "backup_count": 5,
    },
    "sessions": {
        "prefix": "claude-",
        "agent_command": "claude",
        "agent_args": ["--dangerously-skip-permissions"],
        "allowed_paths": [],
        "default_directory": None,
        "workspace_template": None,
        "capture_lines": 100,
        "stream_lines": 200,
    },
    "tmux": {
        "subprocess_timeout": 5,
        "text_enter_delay_ms": 1500,
    },
}


def _to_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _to_path_list(value: str) -> list[str]:
    """Split a comma-separated path list, dropping blank entries."""
    return [p.strip() for p in value.split(",") if p.strip()]


# Environment variable mappings
# Maps env var name to (config_section, config_key, type_converter)
ENV_MAPPINGS = {
    "SESSION_RELAY_HOST": ("server", "host", str),
    "SESSION_RELAY_PORT": ("server", "port", int),
    "SESSION_RELAY_DEBUG": ("server", "debug", _to_bool),
    "SESSION_RELAY_LOG_LEVEL": ("logging", "level", str),
    "ALLOWED_PATHS": ("sessions", "allowed_paths", _to_path_list),
    "DEFAULT_DIRECTORY": ("sessions", "default_directory", str),
    "SESSION_PREFIX": ("sessions", "prefix", str),
    "AGENT_COMMAND": ("sessions", "agent_command", str),
    "SESSION_WORKSPACE_TEMPLATE": ("sessions", "workspace_template", str),
    "TMUX_SUBPROCESS_TIMEOUT": ("tmux", "subprocess_timeout", float),
    "TMUX_TEXT_ENTER_DELAY_MS": ("tmux", "text_enter_delay_ms", int),
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config(config_path: Path) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r") as f:
        content = yaml.safe_load(f)
        return content if content else {}


def apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides to configuration."""
    result = config.copy()

    for env_var, (section, key, converter) in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            # DEFAULTS sections are shared; copy before writing
            result[section] = dict(result.get(section, {}))
            result[section][key] = converter(value)

    return result


def load_config(config_path: str | Path = "config.yaml") -> dict:
    """Load config: env vars > config.yaml > DEFAULTS."""
    if isinstance(config_path, str):
        config_path = Path(config_path)

    config = deep_merge(DEFAULTS, {})

    yaml_config = load_yaml_config(config_path)
    config = deep_merge(config, yaml_config)

    config = apply_env_overrides(config)

    return config


def get_value(config: dict, *keys: str, default: Any = None) -> Any:
    """Get a nested configuration value by key path."""
    result = config
    for key in keys:
        if isinstance(result, dict) and key in result:
            result = result[key]
        else:
            return default
    return result


def get_sessions_config(config: dict) -> dict:
    """Get session manager configuration with defaults."""
    allowed_paths = get_value(config, "sessions", "allowed_paths", default=[])
    if isinstance(allowed_paths, str):
        allowed_paths = _to_path_list(allowed_paths)

    agent_args = get_value(
        config, "sessions", "agent_args", default=["--dangerously-skip-permissions"]
    )

    return {
        "prefix": get_value(config, "sessions", "prefix", default="claude-"),
        "agent_command": get_value(
            config, "sessions", "agent_command", default="claude"
        ),
        "agent_args": list(agent_args or []),
        "allowed_paths": list(allowed_paths or []),
        "default_directory": get_value(
            config, "sessions", "default_directory", default=None
        ) or os.getcwd(),
        "workspace_template": get_value(
            config, "sessions", "workspace_template", default=None
        ),
        "capture_lines": get_value(config, "sessions", "capture_lines", default=100),
        "stream_lines": get_value(config, "sessions", "stream_lines", default=200),
    }


def get_tmux_config(config: dict) -> dict:
    """Get tmux host configuration with defaults."""
    return {
        "subprocess_timeout": get_value(
            config, "tmux", "subprocess_timeout", default=5
        ),
        "text_enter_delay_ms": get_value(
            config, "tmux", "text_enter_delay_ms", default=1500
        ),
    }
