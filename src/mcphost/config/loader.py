"""mcphost configuration loader."""

import os
import re
import typing
from collections.abc import Callable
from dataclasses import fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from mcphost.errors import create_error
from mcphost.types import LogFormat, LogLevel, MCPTransport, ValidationIssue, ValidationResult

from .models import HostConfig

CONFIG_ENV_VAR = "MCPHOST_CONFIG_PATH"
LOCAL_CONFIG_NAME = "mcphost.yaml"


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references

    Returns:
        String with env vars resolved

    Raises:
        MCPHostError: If required var not set
    """
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        elif operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", detail=error_msg)
        else:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Required environment variable {var_name} not set",
            )

    return re.sub(pattern, replacer, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve env vars in data structure."""
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


class ConfigLoader:
    """Load and validate mcphost configuration."""

    VALID_KEYS = {"client", "logging", "servers", "state_file"}

    def __init__(self, logger: Any = None):
        """Initialize config loader.

        Args:
            logger: Optional HostLogger instance
        """
        self._config: HostConfig | None = None
        self._config_path: Path | None = None
        self._logger = logger
        self._change_callbacks: list[Callable[[HostConfig], None]] = []

    def set_logger(self, logger: Any) -> None:
        """Attach a logger once logging is configured."""
        self._logger = logger

    @property
    def config_path(self) -> Path | None:
        """Path of the last loaded file, if any."""
        return self._config_path

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> HostConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. MCPHOST_CONFIG_PATH environment variable
        2. ./mcphost.yaml
        3. ~/.mcphost/config.yaml
        4. If use_defaults=True and no file found, use default configuration

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded HostConfig instance

        Raises:
            MCPHostError: If file not found (when use_defaults=False) or invalid
        """
        if path is None:
            path = self._resolve_config_path()

        config_path = Path(path).expanduser()

        if not config_path.exists():
            if use_defaults:
                if self._logger:
                    self._logger.info("config", "No config file found, using defaults")
                return self.load_defaults()
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Configuration file not found: {config_path}",
            )

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Invalid YAML in config file: {e}",
            ) from e

        if not isinstance(data, dict):
            raise create_error(
                "CONFIG_INVALID",
                detail="Configuration root must be a mapping",
            )

        data = _resolve_env_vars_recursive(data)

        return self.load_from_dict(data, config_path)

    def load_defaults(self) -> HostConfig:
        """Load default configuration without a file."""
        return self.load_from_dict({})

    def load_from_dict(self, data: dict[str, Any], config_path: Path | None = None) -> HostConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration dictionary
            config_path: Optional path to config file (for tracking)

        Returns:
            Loaded HostConfig instance

        Raises:
            MCPHostError: If configuration is invalid
        """
        validation = self.validate(data)
        for warning in validation.warnings:
            if self._logger:
                self._logger.warn("config", warning.message, path=warning.path)
        if not validation.valid:
            error_messages = [f"- {issue.path}: {issue.message}" for issue in validation.errors]
            raise create_error(
                "CONFIG_INVALID",
                detail="Configuration validation failed:\n" + "\n".join(error_messages),
            )

        try:
            config = self._dict_to_config(data)
        except Exception as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Failed to parse configuration: {e}",
            ) from e

        self._config = config
        self._config_path = config_path

        if self._logger:
            self._logger.info(
                "config",
                f"Configuration loaded ({len(config.servers)} servers)",
            )

        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate config data without loading.

        Args:
            data: Configuration dictionary

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        for key in data:
            if key not in self.VALID_KEYS:
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        client = data.get("client")
        if client is not None:
            if not isinstance(client, dict):
                errors.append(ValidationIssue(path="client", message="client must be a mapping"))
            else:
                for key in ("request_timeout", "startup_grace", "kill_timeout"):
                    if key in client:
                        value = client[key]
                        if (
                            isinstance(value, bool)
                            or not isinstance(value, (int, float))
                            or value < 0
                        ):
                            errors.append(
                                ValidationIssue(
                                    path=f"client.{key}",
                                    message=f"{key} must be a non-negative number",
                                )
                            )

        logging_cfg = data.get("logging")
        if isinstance(logging_cfg, dict):
            if "level" in logging_cfg and logging_cfg["level"] not in {
                level.value for level in LogLevel
            }:
                errors.append(
                    ValidationIssue(
                        path="logging.level",
                        message=f"level must be one of {[level.value for level in LogLevel]}",
                    )
                )
            if "format" in logging_cfg and logging_cfg["format"] not in {
                fmt.value for fmt in LogFormat
            }:
                errors.append(
                    ValidationIssue(
                        path="logging.format",
                        message=f"format must be one of {[fmt.value for fmt in LogFormat]}",
                    )
                )

        servers = data.get("servers")
        if servers is not None:
            if not isinstance(servers, dict):
                errors.append(ValidationIssue(path="servers", message="servers must be a mapping"))
            else:
                for name, server in servers.items():
                    errors.extend(self._validate_server(str(name), server))

        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    def _validate_server(self, name: str, server: Any) -> list[ValidationIssue]:
        """Validate one entry under ``servers``."""
        path = f"servers.{name}"
        if not isinstance(server, dict):
            return [ValidationIssue(path=path, message="server definition must be a mapping")]

        issues: list[ValidationIssue] = []
        transport = server.get("transport", MCPTransport.STDIO.value)
        if transport not in {t.value for t in MCPTransport}:
            issues.append(
                ValidationIssue(
                    path=f"{path}.transport",
                    message=f"Unknown transport: {transport}",
                )
            )
        elif transport == MCPTransport.STDIO.value:
            command = server.get("command")
            if not isinstance(command, str) or not command.strip():
                issues.append(
                    ValidationIssue(
                        path=f"{path}.command",
                        message="command is required for stdio servers",
                    )
                )

        args = server.get("args", [])
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            issues.append(
                ValidationIssue(path=f"{path}.args", message="args must be a list of strings")
            )

        env = server.get("env", {})
        if not isinstance(env, dict):
            issues.append(ValidationIssue(path=f"{path}.env", message="env must be a mapping"))

        if "auto_start" in server and not isinstance(server["auto_start"], bool):
            issues.append(
                ValidationIssue(path=f"{path}.auto_start", message="auto_start must be a boolean")
            )

        return issues

    def get(self) -> HostConfig:
        """Get current configuration.

        Raises:
            MCPHostError: If configuration not loaded
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", detail="Configuration not loaded")
        return self._config

    def reload(self) -> HostConfig:
        """Reload configuration from file and notify registered callbacks.

        Raises:
            MCPHostError: If no config path set or reload fails
        """
        if self._config_path is None:
            raise create_error("CONFIG_INVALID", detail="No config path set, cannot reload")

        new_config = self.load(self._config_path)

        for callback in self._change_callbacks:
            try:
                callback(new_config)
            except Exception as e:
                if self._logger:
                    self._logger.error("config", f"Config change callback failed: {e}")

        return new_config

    def on_change(self, callback: Callable[[HostConfig], None]) -> None:
        """Register callback for config changes."""
        self._change_callbacks.append(callback)

    def _resolve_config_path(self) -> Path:
        """Resolve config file path using resolution order."""
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        local_path = Path(LOCAL_CONFIG_NAME)
        if local_path.exists():
            return local_path

        home_path = Path.home() / ".mcphost" / "config.yaml"
        if home_path.exists():
            return home_path

        # Not found - use local path as default
        return local_path

    def _dict_to_config(self, data: dict[str, Any]) -> HostConfig:
        """Convert dictionary to HostConfig."""
        kwargs: dict[str, Any] = {}

        for f in fields(HostConfig):
            if f.name in data:
                kwargs[f.name] = self._convert_field(f.type, data[f.name])

        return HostConfig(**kwargs)

    def _convert_field(self, field_type: Any, value: Any) -> Any:
        """Convert field value to appropriate type."""
        if value is None:
            return None

        origin = typing.get_origin(field_type)

        if origin is list:
            if not isinstance(value, list):
                return value
            args = typing.get_args(field_type)
            if args:
                return [self._convert_field(args[0], item) for item in value]
            return value

        if origin is dict:
            if not isinstance(value, dict):
                return value
            args = typing.get_args(field_type)
            if args and len(args) == 2:
                value_type = args[1]
                return {str(k): self._convert_field(value_type, v) for k, v in value.items()}
            return value

        if hasattr(field_type, "__dataclass_fields__"):
            if isinstance(value, dict):
                kwargs = {}
                for f in fields(field_type):
                    if f.name in value:
                        kwargs[f.name] = self._convert_field(f.type, value[f.name])
                return field_type(**kwargs)
            return value

        if isinstance(field_type, type) and issubclass(field_type, Enum):
            if isinstance(value, str):
                return field_type(value)
            return value

        return value
