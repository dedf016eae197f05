"""
Configuration Management Module
Handles loading and validation of the YAML configuration for workflow updates
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jsonschema import ValidationError, validate

from ..workflow.updater import DEFAULT_REF

DEFAULT_CONFIG_PATH = Path(".github/workflow-sync.yaml")
DEFAULT_WORKFLOWS_DIR = ".github/workflows"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_COMPILE_COMMAND = ["gh", "aw", "compile", "{name}"]

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


@dataclass
class UpdateConfig:
    """Settings shared by every workflow update in a run"""
    workflows_dir: str = DEFAULT_WORKFLOWS_DIR
    default_ref: str = DEFAULT_REF
    api_url: str = DEFAULT_API_URL
    token_env: Optional[List[str]] = None
    timeout_seconds: int = 30
    compile_command: Optional[List[str]] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if self.token_env is None:
            self.token_env = ["GH_TOKEN", "GITHUB_TOKEN"]
        if self.compile_command is None:
            self.compile_command = list(DEFAULT_COMPILE_COMMAND)
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if not self.default_ref.strip():
            raise ValueError("default_ref cannot be empty")

    def resolve_token(self, explicit_token: Optional[str] = None) -> Optional[str]:
        """Return the explicit token, or the first non-empty configured environment variable."""
        if explicit_token:
            return explicit_token
        for name in self.token_env or []:
            value = os.environ.get(name)
            if value:
                return value
        return None


class ConfigLoader:
    """Loads and validates update configuration from YAML files"""

    # JSON Schema for configuration validation
    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "workflows_dir": {"type": "string", "minLength": 1},
            "default_ref": {"type": "string", "minLength": 1},
            "api_url": {"type": "string", "minLength": 1},
            "token_env": {
                "type": "array",
                "items": {"type": "string", "minLength": 1}
            },
            "timeout_seconds": {"type": "integer", "minimum": 1, "maximum": 600},
            "compile_command": {
                "type": "array",
                "minItems": 1,
                "items": {"type": "string"}
            },
            "log_level": {
                "type": "string",
                "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            }
        },
        "additionalProperties": False
    }

    @classmethod
    def load_config(cls, config_path: str | os.PathLike[str]) -> UpdateConfig:
        """
        Load and validate configuration from a YAML file

        Environment references of the form ``${VAR}`` or ``${VAR:default}``
        are substituted before parsing.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            UpdateConfig with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the YAML is invalid or doesn't match the schema
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")
        content = substitute_env_vars(content, source=str(path))

        try:
            config_data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if config_data is None:
            config_data = {}

        try:
            validate(instance=config_data, schema=cls.CONFIG_SCHEMA)
        except ValidationError as e:
            raise ValueError(f"Configuration validation failed: {e.message}") from e

        return cls._build_config(config_data)

    @classmethod
    def _build_config(cls, config_data: Dict[str, Any]) -> UpdateConfig:
        """Build UpdateConfig from validated configuration data"""
        return UpdateConfig(
            workflows_dir=config_data.get("workflows_dir", DEFAULT_WORKFLOWS_DIR),
            default_ref=config_data.get("default_ref", DEFAULT_REF),
            api_url=config_data.get("api_url", DEFAULT_API_URL).rstrip("/"),
            token_env=config_data.get("token_env"),
            timeout_seconds=config_data.get("timeout_seconds", 30),
            compile_command=config_data.get("compile_command"),
            log_level=config_data.get("log_level", "INFO"),
        )


def substitute_env_vars(content: str, *, source: str = "<config>") -> str:
    """Replace ``${VAR}`` and ``${VAR:default}`` references in ``content``."""

    def replace_env_var(match):
        var_name = match.group(1)
        default_provided = match.group(2) is not None
        env_value = os.getenv(var_name)

        # Empty strings count as missing so YAML does not coerce to null
        if env_value not in (None, ""):
            return env_value
        if default_provided:
            return match.group(2) or ""
        raise ValueError(
            f"Environment variable '{var_name}' is required but not set for configuration file '{source}'."
        )

    return _ENV_PATTERN.sub(replace_env_var, content)


class ConfigManager:
    """Public interface for configuration management"""

    @classmethod
    def load_config(cls, config_path: str | os.PathLike[str] | None = None) -> UpdateConfig:
        """
        Load configuration from ``config_path``.

        When no path is given the default location is used if present,
        otherwise built-in defaults are returned.
        """
        if config_path is None:
            if not DEFAULT_CONFIG_PATH.exists():
                return UpdateConfig()
            config_path = DEFAULT_CONFIG_PATH
        return ConfigLoader.load_config(config_path)


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_COMPILE_COMMAND",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_WORKFLOWS_DIR",
    "ConfigLoader",
    "ConfigManager",
    "UpdateConfig",
    "substitute_env_vars",
]
