"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..utils.logging import ConfigurationError, LogContext, get_logger

logger = get_logger(__name__, LogContext.CONFIG)

ENV_PREFIX = "SESH_"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class HostConfig(BaseModel):
    """A remote host whose screen sessions are listed alongside local ones."""

    name: str = Field(description="Short name used to tag session identifiers")
    hostname: str = Field(description="Host name or address passed to ssh")
    user: str | None = Field(default=None, description="Remote user name")
    port: int | None = Field(default=None, description="SSH port")
    identity_file: str | None = Field(default=None, description="SSH private key")

    @field_validator("name")
    @classmethod
    def _name_has_no_separator(cls, value: str) -> str:
        if not value or "@" in value:
            raise ValueError("host name must be non-empty and must not contain '@'")
        return value

    @property
    def connection_string(self) -> str:
        if self.user:
            return f"{self.user}@{self.hostname}"
        return self.hostname


class SeshConfig(BaseModel):
    """Configuration model for sesh."""

    # screen
    screen_command: str = Field(default="screen", description="screen executable")
    default_shell: str | None = Field(
        default=None, description="Shell started after a window's command exits"
    )
    command_timeout: float = Field(
        default=10.0, description="Timeout in seconds for a single screen command"
    )

    # Attaching
    attach_mode: str = Field(
        default="exec", description="exec replaces this process, spawn opens a terminal"
    )
    spawn_terminal: str = Field(
        default="xterm", description="Terminal emulator used in spawn mode"
    )

    # Refresh and preview
    refresh_interval: float = Field(
        default=2.0, description="Seconds between session list refreshes"
    )
    preview_interval: float = Field(
        default=1.0, description="Seconds between preview captures"
    )
    preview_lines: int = Field(default=40, description="Lines kept in a preview")
    capture_attempts: int = Field(
        default=10, description="Times to poll for a hardcopy artifact"
    )
    capture_backoff: float = Field(
        default=0.01, description="Initial delay between artifact polls in seconds"
    )

    # Templates
    templates_dir: str = Field(
        default="~/.config/sesh/templates", description="Directory holding templates"
    )

    # Integrations
    git_status: bool = Field(
        default=True, description="Show git branch and dirty state for sessions"
    )

    # Remote hosts
    include_remote: bool = Field(
        default=False, description="List sessions from configured hosts"
    )
    ssh_connect_timeout: int = Field(
        default=3, description="SSH connect timeout in seconds"
    )
    hosts: list[HostConfig] = Field(default_factory=list, description="Remote hosts")

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")
    log_file: str | None = Field(default=None, description="Log file path")

    # Output formatting
    default_output_format: str = Field(
        default="human", description="Default output format"
    )

    @field_validator("attach_mode")
    @classmethod
    def _valid_attach_mode(cls, value: str) -> str:
        value = value.lower()
        if value not in ("exec", "spawn"):
            raise ValueError("attach_mode must be 'exec' or 'spawn'")
        return value

    @field_validator("default_output_format")
    @classmethod
    def _valid_output_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("human", "json"):
            raise ValueError("default_output_format must be 'human' or 'json'")
        return value

    @field_validator("log_level")
    @classmethod
    def _valid_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")
        return value

    @field_validator("refresh_interval", "preview_interval", "command_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("capture_attempts", "preview_lines")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    def get_host(self, name: str) -> HostConfig | None:
        for host in self.hosts:
            if host.name == name:
                return host
        return None


def config_search_paths() -> list[Path]:
    """Locations checked for a configuration file, in order."""
    return [
        Path.cwd() / "sesh.yaml",
        Path.cwd() / "sesh.yml",
        Path.home() / ".config" / "sesh" / "config.yaml",
        Path.home() / ".sesh.yaml",
    ]


def find_config_file(custom_path: str | None = None) -> Path | None:
    """Find configuration file in standard locations."""
    if custom_path:
        path = Path(custom_path).expanduser()
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {custom_path}")

    for path in config_search_paths():
        if path.exists():
            return path

    return None


def load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a mapping at the top level"
        )
    return data


def load_env_vars() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        f"{ENV_PREFIX}SCREEN_COMMAND": "screen_command",
        f"{ENV_PREFIX}DEFAULT_SHELL": "default_shell",
        f"{ENV_PREFIX}COMMAND_TIMEOUT": "command_timeout",
        f"{ENV_PREFIX}ATTACH_MODE": "attach_mode",
        f"{ENV_PREFIX}SPAWN_TERMINAL": "spawn_terminal",
        f"{ENV_PREFIX}REFRESH_INTERVAL": "refresh_interval",
        f"{ENV_PREFIX}PREVIEW_INTERVAL": "preview_interval",
        f"{ENV_PREFIX}PREVIEW_LINES": "preview_lines",
        f"{ENV_PREFIX}CAPTURE_ATTEMPTS": "capture_attempts",
        f"{ENV_PREFIX}TEMPLATES_DIR": "templates_dir",
        f"{ENV_PREFIX}GIT_STATUS": "git_status",
        f"{ENV_PREFIX}INCLUDE_REMOTE": "include_remote",
        f"{ENV_PREFIX}SSH_CONNECT_TIMEOUT": "ssh_connect_timeout",
        f"{ENV_PREFIX}LOG_LEVEL": "log_level",
        f"{ENV_PREFIX}LOG_FILE": "log_file",
        f"{ENV_PREFIX}DEFAULT_OUTPUT_FORMAT": "default_output_format",
    }
    int_keys = {"preview_lines", "capture_attempts", "ssh_connect_timeout"}
    float_keys = {"command_timeout", "refresh_interval", "preview_interval"}
    bool_keys = {"git_status", "include_remote"}

    for env_var, config_key in env_mappings.items():
        if env_var in os.environ:
            env_value = os.environ[env_var]
            # Convert to appropriate types
            if config_key in int_keys:
                try:
                    config[config_key] = int(env_value)
                except ValueError:
                    continue
            elif config_key in float_keys:
                try:
                    config[config_key] = float(env_value)
                except ValueError:
                    continue
            elif config_key in bool_keys:
                config[config_key] = env_value.lower() in ("true", "1", "yes", "on")
            else:
                config[config_key] = env_value

    return config


def load_config(
    config_path: str | None = None,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> SeshConfig:
    """Load configuration from file and environment variables.

    Precedence order (highest to lowest):
    1. CLI flag overrides
    2. Environment variables
    3. Configuration file (with profile support)
    4. Default values
    """
    config_data: dict[str, Any] = {}

    config_file = find_config_file(config_path)
    if config_file:
        file_data = load_config_file(config_file)
        base_data = {k: v for k, v in file_data.items() if k != "profiles"}
        config_data.update(base_data)

        profiles = file_data.get("profiles") or {}
        if profile and profile in profiles:
            config_data.update(profiles[profile] or {})
        logger.debug("Loaded config file", path=str(config_file), profile=profile)

    config_data.update(load_env_vars())

    if cli_overrides:
        config_data.update({k: v for k, v in cli_overrides.items() if v is not None})

    try:
        return SeshConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def save_config(config: SeshConfig, config_path: str | None = None) -> Path:
    """Save configuration to file."""
    if config_path:
        path = Path(config_path).expanduser()
    else:
        config_dir = Path.home() / ".config" / "sesh"
        config_dir.mkdir(parents=True, exist_ok=True)
        path = config_dir / "config.yaml"

    config_dict = config.model_dump()
    with open(path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=True)

    return path


class ConfigurationLoader:
    """Helper class for configuration loading operations."""

    def __init__(self, config_path: str | None = None, profile: str | None = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to configuration file
            profile: Configuration profile to use
        """
        self.config_path = config_path
        self.profile = profile

    def load(self, cli_overrides: dict[str, Any] | None = None) -> SeshConfig:
        """Load configuration with current settings.

        Args:
            cli_overrides: CLI parameter overrides

        Returns:
            Loaded and validated configuration
        """
        return load_config(self.config_path, self.profile, cli_overrides)
