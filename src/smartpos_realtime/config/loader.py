"""Configuration loading and validation for the realtime client."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, cast

if TYPE_CHECKING:
    from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from smartpos_realtime.config.schema import ClientConfig

logger = structlog.get_logger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Read one client YAML file (base config or per-till override).

    An empty file reads as ``{}``; any other non-mapping document is rejected.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a mapping
    """
    if not path.is_file():
        reason = "not found" if not path.exists() else "is not a file"
        raise ConfigurationError(f"Configuration file {reason}: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            f"Configuration must be a YAML mapping, got {type(content).__name__}"
        )
    return content


def expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Substitute ``$VAR`` / ``${VAR}`` in every string, e.g. ``socket_url: ${POS_WS_URL}``.

    Unset variables stay literal so validation reports them against the field.
    """

    def expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return os.path.expandvars(value)
        if isinstance(value, dict):
            return {k: expand_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [expand_value(item) for item in value]
        return value

    return cast("dict[str, Any]", expand_value(config))


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``override`` on ``base`` section by section.

    Nested mappings merge key by key; anything else, including the ``topics``
    list, is replaced wholesale. Neither input is modified.
    """
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = merge_configs(current, value)
        else:
            result[key] = value
    return result


def parse_config(config_dict: dict[str, Any]) -> ClientConfig:
    """Validate a configuration mapping.

    Raises:
        ConfigurationError: If validation fails, with one line per error
    """
    try:
        return ClientConfig.model_validate(config_dict)
    except ValidationError as e:
        errors = cast("list[dict[str, Any]]", e.errors())
        error_messages = []
        for error in errors:
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            error_messages.append(f"  - {loc}: {msg}")

        raise ConfigurationError(
            "Configuration validation failed:\n" + "\n".join(error_messages),
            errors=errors,
        ) from e


def load_config(
    config_path: Path,
    *,
    override_path: Path | None = None,
    expand_env: bool = True,
) -> ClientConfig:
    """Load and validate client configuration from YAML file(s).

    Args:
        config_path: Path to the main configuration file
        override_path: Optional path to override configuration file
        expand_env: Whether to expand environment variables

    Returns:
        Validated ClientConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    logger.info("Loading configuration", path=str(config_path))

    config_dict = load_yaml_file(config_path)

    if override_path:
        logger.info("Loading configuration override", path=str(override_path))
        override_dict = load_yaml_file(override_path)
        config_dict = merge_configs(config_dict, override_dict)

    if expand_env:
        config_dict = expand_env_vars(config_dict)

    config = parse_config(config_dict)

    logger.info(
        "Configuration loaded successfully",
        name=config.name,
        topics=config.realtime.topics or "all",
        max_backoff_ms=config.realtime.max_backoff_ms,
    )

    return config


def validate_config_file(config_path: Path) -> list[str]:
    """Validate a configuration file without keeping the result.

    Returns:
        List of validation error messages (empty if valid)
    """
    errors: list[str] = []

    try:
        load_config(config_path)
    except ConfigurationError as e:
        errors.append(str(e))

    return errors


def generate_example_config() -> str:
    """Generate an example configuration YAML string."""
    example = {
        "name": "store-01-inventory",
        "realtime": {
            "api_base_url": "https://smartpos-api.example.com",
            "topics": ["inventory", "sales"],
            "max_backoff_ms": 15000,
            "fallback_grace_ms": 1000,
            "open_timeout_s": 10.0,
            "token_env": "SMARTPOS_TOKEN",
        },
        "logging": {
            "level": "INFO",
            "format": "console",
        },
    }

    return yaml.dump(example, default_flow_style=False, sort_keys=False, allow_unicode=True)
