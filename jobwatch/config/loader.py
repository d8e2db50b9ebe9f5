"""Configuration loader for jobwatch."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig, NotificationChannel
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (Path("config.yaml"), Path("config") / "config.yaml")


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """Load and validate the YAML configuration plus environment variables.

    Lookup order for the config file: ``config_path`` if given, then
    ``config.yaml``, then ``config/config.yaml``.

    Args:
        config_path: Optional explicit configuration file

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_file = _find_config_file(config_path)
    app_config = parse_config(_read_yaml(config_file))

    email_enabled = (
        app_config.notifications.enabled
        and app_config.notifications.channel == NotificationChannel.EMAIL.value
    )
    env_config = load_environment_config(require_smtp=email_enabled)
    return app_config, env_config


def parse_config(config_dict: Any) -> AppConfig:
    """Validate an already-parsed mapping into AppConfig.

    Raises:
        ConfigurationError: With one readable line per validation problem
    """
    if not config_dict:
        raise ConfigurationError(
            "Configuration file is empty",
            suggestions=["Copy config.example.yaml to config.yaml and edit it"],
        )
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping, got {type(config_dict).__name__}"
        )

    warnings = check_for_warnings(config_dict)
    if warnings:
        emit_warnings(warnings)

    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            errors=_format_validation_errors(e),
            suggestions=[
                "Review config.example.yaml for the expected layout",
                "Check that every site and profile has its required fields",
            ],
        ) from e


def _format_validation_errors(error: ValidationError) -> List[str]:
    lines = []
    for item in error.errors():
        path = " -> ".join(str(part) for part in item["loc"]) or "config"
        if item["type"] == "missing":
            lines.append(f"Missing required field: {path}")
        elif item["type"].endswith("_type"):
            expected = item["type"][: -len("_type")]
            lines.append(f"Invalid type for '{path}': expected {expected}, got {item.get('input')!r}")
        else:
            lines.append(f"{path}: {item['msg']}")
    return lines


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    try:
        with open(config_file, "r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax and indentation (spaces, not tabs)",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file {config_file}: {e}",
            suggestions=["Check that the file exists and is readable"],
        ) from e


def _find_config_file(config_path: Optional[Path] = None) -> Path:
    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=["Check the --config path and try again"],
            )
        return config_path

    for candidate in DEFAULT_CONFIG_LOCATIONS:
        if candidate.exists():
            return candidate

    raise ConfigurationError(
        "Configuration file not found",
        errors=[f"Tried: {candidate}" for candidate in DEFAULT_CONFIG_LOCATIONS],
        suggestions=[
            "Copy config.example.yaml to config.yaml",
            "Use --config to point at a configuration file",
        ],
    )
