"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.stockcast/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".stockcast"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "STOCKCAST_"

DEFAULT_API_BASE_URL = "http://localhost:8000"
DEFAULT_API_TIMEOUT_SECONDS = 10.0
DEFAULT_CACHE_DIR = DEFAULT_CONFIG_DIR / "cache"
DEFAULT_CACHE_NAMESPACE = "stockcast_cache_"
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60 # 24 hours
DEFAULT_QUEUE_CONCURRENCY = 3

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {} # For testing purposes
_loaded = False

def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('cache.ttl_seconds')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat

def env_var_name(key: str) -> str:
    """Environment variable consulted for a config key, e.g. STOCKCAST_CACHE_DIR."""
    return f"{ENV_PREFIX}{key.upper().replace('.', '_')}"

def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, reload: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to `get_config`

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        reload: Load again even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not reload:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False so real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment variables are read on each get_config call
    _loaded = True
    logger.debug("Configuration loading process completed.")

def _coerce(value: str) -> Any:
    """Converts common string forms from the environment to Python types."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (STOCKCAST_<KEY>)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'cache.ttl_seconds'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def _positive_number(key: str, default: float) -> float:
    value = get_config(key, default)
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Config '{key}' is not a number ({value!r}). Using default {default}.")
        return default
    if number <= 0:
        logger.warning(f"Config '{key}' must be positive ({value!r}). Using default {default}.")
        return default
    return number

def get_api_base_url() -> str:
    return str(get_config('api.base_url', DEFAULT_API_BASE_URL))

def get_api_timeout() -> float:
    return _positive_number('api.timeout_seconds', DEFAULT_API_TIMEOUT_SECONDS)

def get_cache_dir() -> Path:
    return Path(str(get_config('cache.dir', DEFAULT_CACHE_DIR))).expanduser()

def get_cache_namespace() -> str:
    return str(get_config('cache.namespace', DEFAULT_CACHE_NAMESPACE))

def get_cache_ttl() -> float:
    """Default cache entry lifetime in seconds."""
    return _positive_number('cache.ttl_seconds', DEFAULT_CACHE_TTL_SECONDS)

def get_queue_concurrency() -> int:
    """Maximum concurrent backend operations; must be a whole number >= 1."""
    value = _positive_number('queue.concurrency', DEFAULT_QUEUE_CONCURRENCY)
    if value < 1 or value != int(value):
        logger.warning(f"Config 'queue.concurrency' must be a whole number >= 1 ({value!r}). Using default {DEFAULT_QUEUE_CONCURRENCY}.")
        return DEFAULT_QUEUE_CONCURRENCY
    return int(value)

def get_task_timeout() -> Optional[float]:
    """Deadline for queued backend operations; None disables it."""
    value = get_config('queue.task_timeout_seconds')
    if value in (None, '', 0):
        return None
    return _positive_number('queue.task_timeout_seconds', DEFAULT_API_TIMEOUT_SECONDS * 3)

def is_prefetch_enabled() -> bool:
    flag = get_config('prefetch.enabled', True)
    if isinstance(flag, str):
        return flag.strip().lower() not in ('false', '0', 'no', 'off')
    return bool(flag)

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")

def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")

# Load configuration when the module is imported
load_configuration()
