"""
Server configuration.

Settings are layered: built-in defaults, then the YAML config file, then
environment variables, then command-line flags (applied by the CLI through
`ServerConfig.with_overrides`).

Example checkup.yaml::

    CACHE_DIR: /var/cache/checkup
    CACHE_HOURS: 6
    HOST: 0.0.0.0
    PORT: 8080
    GITHUB_TOKEN: ghp_...
    LOG_LEVEL: DEBUG
    LOG_DIR: /var/log/checkup
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

import platformdirs
import yaml

from checkup.constants import (
    APP_NAME,
    CACHE_DIR_ENV_VAR,
    CACHE_HOURS_ENV_VAR,
    CONFIG_FILE_NAME,
    DEFAULT_CACHE_HOURS,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
    GITHUB_TOKEN_ENV_VAR,
    HOST_ENV_VAR,
    PORT_ENV_VAR,
)
from checkup.exceptions import ConfigFileError, ConfigValidationError
from checkup.log_utils import logger


def get_default_config_path() -> str:
    return os.path.join(platformdirs.user_config_dir(APP_NAME), CONFIG_FILE_NAME)


@dataclass(frozen=True)
class ServerConfig:
    """Resolved settings for one server process."""

    cache_dir: str
    cache_hours: float = DEFAULT_CACHE_HOURS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    github_token: Optional[str] = None
    log_level: Optional[str] = None
    log_dir: Optional[str] = None

    def with_overrides(self, **overrides: Any) -> "ServerConfig":
        """
        Return a copy with every non-None override applied and validated.

        Raises:
            ConfigValidationError: If an override has an invalid value.
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        if not values:
            return self
        return _validate(replace(self, **values))


def _as_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(
            f"Invalid value for {name}: {value!r}", "expected a number"
        ) from e


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(
            f"Invalid value for {name}: {value!r}", "expected an integer"
        ) from e


def _validate(config: ServerConfig) -> ServerConfig:
    cache_hours = _as_float("CACHE_HOURS", config.cache_hours)
    if cache_hours < 0:
        raise ConfigValidationError(
            f"Invalid value for CACHE_HOURS: {cache_hours}", "must not be negative"
        )
    port = _as_int("PORT", config.port)
    if not 0 <= port <= 65535:
        raise ConfigValidationError(
            f"Invalid value for PORT: {port}", "must be between 0 and 65535"
        )
    request_timeout = _as_float("REQUEST_TIMEOUT", config.request_timeout)
    if request_timeout <= 0:
        raise ConfigValidationError(
            f"Invalid value for REQUEST_TIMEOUT: {request_timeout}",
            "must be positive",
        )
    if not config.cache_dir:
        raise ConfigValidationError("CACHE_DIR must not be empty")
    return replace(
        config,
        cache_dir=os.path.expanduser(str(config.cache_dir)),
        cache_hours=cache_hours,
        port=port,
        request_timeout=request_timeout,
        log_dir=os.path.expanduser(str(config.log_dir)) if config.log_dir else None,
    )


def _read_config_file(config_path: str) -> Dict[str, Any]:
    """
    Read the YAML config file, returning an empty mapping when it does not exist.

    Raises:
        ConfigFileError: If the file cannot be read or is not a YAML mapping.
    """
    if not os.path.exists(config_path):
        logger.debug("No config file at %s; using defaults", config_path)
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file {config_path}", str(e)) from e
    except yaml.YAMLError as e:
        raise ConfigFileError(f"Invalid YAML in config file {config_path}", str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(
            f"Invalid config file {config_path}", "top level must be a mapping"
        )
    logger.debug("Loaded configuration from %s", config_path)
    return {str(k).upper(): v for k, v in data.items()}


def load_config(
    path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> ServerConfig:
    """
    Load the server configuration.

    Parameters:
        path (Optional[str]): Config file to read; defaults to `checkup.yaml` in the platform user config directory.
        environ (Optional[Mapping[str, str]]): Environment to read overrides from; defaults to `os.environ`.

    Returns:
        ServerConfig: The validated configuration.

    Raises:
        ConfigFileError: If the config file exists but cannot be read or parsed.
        ConfigValidationError: If a setting has an invalid value.
    """
    env = os.environ if environ is None else environ
    file_values = _read_config_file(path or get_default_config_path())

    def setting(file_key: str, env_var: Optional[str], default: Any) -> Any:
        if env_var and env.get(env_var):
            return env[env_var]
        value = file_values.get(file_key)
        return default if value is None else value

    config = ServerConfig(
        cache_dir=setting(
            "CACHE_DIR", CACHE_DIR_ENV_VAR, platformdirs.user_cache_dir(APP_NAME)
        ),
        cache_hours=setting("CACHE_HOURS", CACHE_HOURS_ENV_VAR, DEFAULT_CACHE_HOURS),
        host=str(setting("HOST", HOST_ENV_VAR, DEFAULT_HOST)),
        port=setting("PORT", PORT_ENV_VAR, DEFAULT_PORT),
        request_timeout=setting("REQUEST_TIMEOUT", None, DEFAULT_REQUEST_TIMEOUT),
        github_token=setting("GITHUB_TOKEN", GITHUB_TOKEN_ENV_VAR, None),
        log_level=setting("LOG_LEVEL", None, None),
        log_dir=setting("LOG_DIR", None, None),
    )
    return _validate(config)
