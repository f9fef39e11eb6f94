"""
Configuration management for the Prerender Gateway.

This module provides a singleton `ConfigurationManager` class to load and access
configuration settings from YAML files. Environment-specific files (development,
testing, production) hold the defaults, and a fixed set of environment variables
override them so the service can be tuned from a container runtime.

Key Features:
- Loads settings from YAML files based on the APP_ENV environment variable.
- Defaults to 'development' environment if APP_ENV is not set.
- Applies environment variable overrides (PORT, RENDER_SECRET, ALLOW_HOSTS, ...) after each load.
- Provides a global `config_manager` instance for easy access.
- Supports dot notation for accessing nested keys (e.g., "cache.ttl_ms").
- Custom exceptions for configuration-related errors.
"""
import os
import yaml
from typing import Annotated, Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# CONFIG_DIR: Path to the directory containing configuration YAML files.
# Config files (e.g., development.yaml, production.yaml) live in the 'config'
# directory of the package (one level up from 'core').
CONFIG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "config")

# DEFAULT_ENV: The default environment to use if APP_ENV is not set.
DEFAULT_ENV = "development"


class ConfigError(Exception):
    """Base class for all configuration-related errors."""
    pass

class ConfigFileNotFoundError(ConfigError):
    """Raised when a specific configuration file (e.g., development.yaml) cannot be found."""
    pass

class InvalidYamlError(ConfigError):
    """Raised when a configuration file contains invalid YAML syntax or is not a dictionary."""
    pass

class InvalidEnvValueError(ConfigError):
    """Raised when an environment variable override cannot be parsed into the expected type."""
    pass


def split_csv(value: Union[str, Iterable[str]]) -> List[str]:
    """
    Normalizes a list-valued setting.

    A string is split on commas; items are trimmed and empty ones dropped.
    Any other iterable of strings is trimmed the same way.
    """
    items = value.split(",") if isinstance(value, str) else value
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


class EnvOverrides(BaseSettings):
    """
    Environment variables that override the YAML configuration.

    Every field defaults to None, so only variables that are actually set end up
    in `model_dump(exclude_unset=True)`. Field names map case-insensitively to the
    variable names (PORT, RENDER_SECRET, ALLOW_HOSTS, ...).
    """
    port: Optional[int] = Field(default=None, description="HTTP listen port")
    render_timeout_ms: Optional[int] = Field(default=None, description="Navigation timeout in ms")
    cache_ttl_ms: Optional[int] = Field(default=None, description="Snapshot lifetime in ms")
    max_cache_items: Optional[int] = Field(default=None, description="Snapshot cache capacity")
    render_secret: Optional[str] = Field(default=None, description="Shared secret for X-Render-Secret")
    allow_hosts: Annotated[Optional[List[str]], NoDecode] = Field(
        default=None, description="Comma-separated host allow-list; empty allows every host"
    )
    deny_private_ips: Optional[bool] = Field(
        default=None, description="Reject hosts resolving to private addresses; only 'false' disables"
    )
    blocked_resource_types: Annotated[Optional[List[str]], NoDecode] = Field(
        default=None, description="Comma-separated Playwright resource types to abort"
    )
    user_agent: Optional[str] = Field(default=None, description="User agent for every page context")
    max_concurrent_renders: Optional[int] = Field(default=None, description="Upper bound on open page contexts")
    log_level: Optional[str] = Field(default=None, description="Root logging level")

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    @field_validator("allow_hosts", "blocked_resource_types", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if value is None or not isinstance(value, (str, list, tuple)):
            return value
        return split_csv(value)

    @field_validator("deny_private_ips", mode="before")
    @classmethod
    def _only_false_disables(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() != "false"
        return value


# ENV_OVERRIDES: environment variable -> dot-notation config key it overrides.
ENV_OVERRIDES: Dict[str, str] = {
    "PORT": "server.port",
    "RENDER_TIMEOUT_MS": "render.timeout_ms",
    "CACHE_TTL_MS": "cache.ttl_ms",
    "MAX_CACHE_ITEMS": "cache.max_items",
    "RENDER_SECRET": "auth.secret",
    "ALLOW_HOSTS": "security.allow_hosts",
    "DENY_PRIVATE_IPS": "security.deny_private_ips",
    "BLOCKED_RESOURCE_TYPES": "render.blocked_resource_types",
    "USER_AGENT": "render.user_agent",
    "MAX_CONCURRENT_RENDERS": "render.max_concurrent_pages",
    "LOG_LEVEL": "logging.level",
}


def read_env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Reads the override variables into a `{config key: value}` dict.

    Args:
        environ (Optional[Mapping[str, str]]): Explicit variables. They take precedence
            over the process environment.

    Raises:
        InvalidEnvValueError: If a set variable cannot be converted to its type.
    """
    names = {name.lower() for name in ENV_OVERRIDES}
    explicit = {name.lower(): value for name, value in (environ or {}).items() if name.lower() in names}
    try:
        overrides = EnvOverrides(**explicit)
    except PydanticValidationError as e:
        bad = ", ".join(str(err["loc"][0]).upper() for err in e.errors() if err.get("loc"))
        raise InvalidEnvValueError(f"Invalid environment override(s) {bad}: {e}")
    return {ENV_OVERRIDES[name.upper()]: value for name, value in overrides.model_dump(exclude_unset=True).items()}


class ConfigurationManager:
    """
    Manages loading and accessing configuration settings from YAML files.

    This class is implemented as a singleton. The first time an instance is created,
    it loads the configuration. Subsequent instantiations return the existing instance.
    """
    CONFIG_DIR: str = CONFIG_DIR

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}
    _current_env: str = ""

    def __new__(cls) -> 'ConfigurationManager':
        """
        Ensures that only one instance of ConfigurationManager is created (Singleton pattern).
        Loads configuration upon first instantiation.
        """
        if cls._instance is None:
            cls._instance = super(ConfigurationManager, cls).__new__(cls)
            cls._instance.load_config()
        return cls._instance

    def load_config(self, env: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> None:
        """
        Loads configuration from a YAML file corresponding to the specified environment,
        then applies environment variable overrides.

        The environment is determined in the following order of precedence:
        1. The `env` parameter passed to this method.
        2. The `APP_ENV` environment variable.
        3. `DEFAULT_ENV` (if neither of the above is set).

        Args:
            env (Optional[str]): The specific environment name (e.g., "production") to load.
                                 If None, uses APP_ENV or DEFAULT_ENV.
            environ (Optional[Mapping[str, str]]): Explicit override variables, read on top
                                                   of the process environment.

        Raises:
            ConfigFileNotFoundError: If the YAML file for the target environment is not found.
            InvalidYamlError: If the YAML file is malformed or not a dictionary.
            InvalidEnvValueError: If an override variable has an unparsable value.
        """
        self._current_env = env or os.getenv("APP_ENV", DEFAULT_ENV)
        config_file_path = os.path.join(self.CONFIG_DIR, f"{self._current_env}.yaml")

        try:
            with open(config_file_path, "r") as f:
                self._config = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigFileNotFoundError(
                f"Configuration file not found for environment '{self._current_env}' at '{config_file_path}'. "
                f"Ensure '{self._current_env}.yaml' exists in the '{self.CONFIG_DIR}' directory."
            )
        except yaml.YAMLError as e:
            raise InvalidYamlError(
                f"Error parsing YAML in configuration file '{config_file_path}': {e}"
            )
        if not isinstance(self._config, dict):
            raise InvalidYamlError(
                f"Configuration file '{config_file_path}' does not contain a valid YAML dictionary."
            )

        for key, value in read_env_overrides(environ).items():
            self.set(key, value)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """
        Retrieves a configuration value for the given key.

        Supports accessing nested values using dot notation (e.g., "render.readiness.timeout_ms").
        If the key is not found, returns the provided default value.

        Args:
            key (str): The configuration key to retrieve.
            default (Optional[Any]): The value to return if the key is not found.

        Returns:
            Any: The configuration value if found, otherwise the default value.
        """
        keys = key.split(".")
        value = self._config
        try:
            for k_part in keys:
                if isinstance(value, dict):
                    value = value[k_part]
                else:
                    return default
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Sets a configuration value, creating intermediate sections as needed.

        Args:
            key (str): Dot-notation key (e.g., "security.allow_hosts").
            value (Any): The value to store.
        """
        keys = key.split(".")
        section = self._config
        for k_part in keys[:-1]:
            if not isinstance(section.get(k_part), dict):
                section[k_part] = {}
            section = section[k_part]
        section[keys[-1]] = value

    def reload_config(self, env: Optional[str] = None) -> None:
        """
        Reloads the configuration, potentially for a different environment.

        Args:
            env (Optional[str]): The environment to reload. If None, reloads the
                                 currently active environment.
        """
        # Local import: the logger module imports this one.
        from prerender_gateway.core.logger import get_logger

        old_env = self._current_env
        self.load_config(env or old_env)
        get_logger(__name__).info(
            f"Configuration reloaded. Previous environment: '{old_env}', active environment: '{self._current_env}'."
        )

    @property
    def current_environment(self) -> str:
        """
        Returns the name of the currently loaded configuration environment.

        Returns:
            str: The name of the current environment (e.g., "development", "production").
        """
        return self._current_env


# Global instance of ConfigurationManager to be used by other modules.
# Created on first import, which triggers the initial configuration load.
config_manager = ConfigurationManager()

def get_config(key: str, default: Optional[Any] = None) -> Any:
    """
    A convenience function to access configuration values via the global `config_manager`.

    Args:
        key (str): The configuration key (dot notation for nested values).
        default (Optional[Any]): Default value if the key is not found.

    Returns:
        Any: The configuration value or the default.
    """
    return config_manager.get(key, default)
