"""YAML configuration for registry runs.

Files live in ``config/<APP_ENV>.yaml`` with ``config/default.yaml`` as the
fallback. String values may reference the environment as ``${NAME}``
(required) or ``${NAME:-fallback}`` (optional); a value that consists of a
single placeholder resolving to an empty string is loaded as null so
optional settings such as the spreadsheet id can be left unset.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import ValidationError

from drive_registry.models.config import PLATFORM_CEILING_SECONDS, AppConfig

log = structlog.stdlib.get_logger()

ENV_PATTERN = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"


class ConfigurationError(Exception):
    """Raised when the run configuration cannot be loaded."""


def resolve_placeholders(value: Any) -> Any:
    """Replace environment placeholders in every string of a parsed YAML tree."""
    if isinstance(value, dict):
        return {key: resolve_placeholders(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_placeholders(item) for item in value]
    if not isinstance(value, str):
        return value

    resolved = ENV_PATTERN.sub(_lookup, value)
    if not resolved and ENV_PATTERN.fullmatch(value):
        return None
    return resolved


def _lookup(match: re.Match) -> str:
    name = match.group("name")
    env_value = os.getenv(name)
    if env_value is not None:
        return env_value
    if match.group("default") is not None:
        return match.group("default")
    raise ConfigurationError(
        f"Environment variable {name} is not set. "
        f"Export it or use ${{{name}:-...}} in the config file to make it optional."
    )


class ConfigLoader:
    """Reads a YAML file into a validated AppConfig."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self.config_dir = config_dir or DEFAULT_CONFIG_DIR

    def load_config(self, config_path: Optional[str] = None) -> AppConfig:
        """
        Load and validate the run configuration.

        Args:
            config_path: Explicit YAML file; defaults to the file selected by APP_ENV

        Returns:
            AppConfig built from the file

        Raises:
            ConfigurationError: If the file is missing, unparsable, references an
                unset required variable or fails validation
        """
        path = Path(config_path) if config_path else self._select_file()
        log.info("loading_configuration", config_path=str(path))

        try:
            raw = yaml.safe_load(path.read_text())
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        try:
            config = AppConfig(**resolve_placeholders(raw))
        except ValidationError as e:
            log.error("configuration_validation_failed", config_path=str(path), error=str(e))
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        self.validate_config(config)
        log.info("configuration_loaded", config_path=str(path), root_id=config.drive.root_folder_id)
        return config

    def _select_file(self) -> Path:
        env = os.getenv("APP_ENV", "default")
        for candidate in (self.config_dir / f"{env}.yaml", self.config_dir / "default.yaml"):
            if candidate.exists():
                return candidate
        raise ConfigurationError(
            f"No configuration for APP_ENV={env!r} and no default.yaml in {self.config_dir}"
        )

    def validate_config(self, config: AppConfig) -> list[str]:
        """Return warnings for settings that load but are likely to misbehave."""
        warnings = []

        if config.run.time_budget_seconds >= PLATFORM_CEILING_SECONDS:
            warnings.append(
                f"run.time_budget_seconds ({config.run.time_budget_seconds}) should stay below "
                f"the {PLATFORM_CEILING_SECONDS}s execution ceiling"
            )
        if not config.sheets.spreadsheet_id:
            warnings.append("sheets.spreadsheet_id is not set; rows will only be kept in memory")
        if not config.drive.credentials_file:
            warnings.append("drive.credentials_file is not set; application default credentials are required")

        if warnings:
            log.warning("configuration_warnings", warnings=warnings)
        return warnings
