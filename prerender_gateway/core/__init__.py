from .config import (
    get_config,
    config_manager,
    ConfigurationManager,
    ConfigError,
    ConfigFileNotFoundError,
    InvalidYamlError,
    InvalidEnvValueError,
    EnvOverrides,
    read_env_overrides,
    split_csv,
)
from .exceptions import (
    PrerenderGatewayError,
    ConfigurationError,
    AuthError,
    ValidationError,
    PolicyError,
    SecurityError,
    ResolutionError,
    ComponentError,
    RendererError,
    RenderTimeoutError,
)
from .logger import setup_logging, get_logger
from .targets import RenderTarget

__all__ = [
    # Config
    "get_config",
    "config_manager",
    "ConfigurationManager",
    "ConfigError",
    "ConfigFileNotFoundError",
    "InvalidYamlError",
    "InvalidEnvValueError",
    "EnvOverrides",
    "read_env_overrides",
    "split_csv",
    # Logger
    "setup_logging",
    "get_logger",
    # Exceptions
    "PrerenderGatewayError",
    "ConfigurationError",
    "AuthError",
    "ValidationError",
    "PolicyError",
    "SecurityError",
    "ResolutionError",
    "ComponentError",
    "RendererError",
    "RenderTimeoutError",
    # Targets
    "RenderTarget",
]
