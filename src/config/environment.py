"""Environment configuration store.

Holds the scope-level defaults the blueprint builder falls back to. The
store is a YAML file organized as scope -> contract key -> options:

    batchline:
      subscriber:
        start_opts:
          max_poll_records: 100
    orders_app:
      subscriber:
        start_opts:
          bootstrap_servers: ${KAFKA_BOOTSTRAP_SERVERS:-localhost:9092}

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax. Lookups are read-only; the process-wide store
is swapped with set_environment() (useful for testing).
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import RootModel, ValidationError

from core.types import ConfigProvider

logger = logging.getLogger(__name__)

# Environment variable naming the YAML file loaded by get_environment()
CONFIG_PATH_ENV_VAR = "BATCHLINE_CONFIG"


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


class EnvironmentFile(RootModel[Dict[str, Dict[str, Dict[str, Any]]]]):
    """Shape of an environment file: scope -> contract key -> options."""


def parse_environment(data: Mapping[str, Any]) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Validate raw environment data.

    Raises:
        ValueError: If the data is not a mapping of scope -> key -> options
    """
    try:
        return EnvironmentFile.model_validate(dict(data)).root
    except ValidationError as e:
        raise ValueError(
            "Invalid environment configuration: expected scope -> key -> options mappings\n"
            f"{e}"
        ) from e


class DictEnvironment:
    """In-memory ConfigProvider backed by nested dicts."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data = parse_environment(data or {})

    def lookup(self, scope: str, key: str) -> Optional[Mapping[str, Any]]:
        return self._data.get(scope, {}).get(key)

    def scopes(self) -> list[str]:
        return list(self._data)


class YamlEnvironment(DictEnvironment):
    """ConfigProvider loaded from a YAML file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Environment file not found: {self.path}")

        logger.info("Loading environment from file: %s", self.path)
        data = _expand_env_vars(load_yaml(self.path))
        if not isinstance(data, dict):
            raise ValueError(f"Invalid environment file {self.path}: top level must be a mapping")
        super().__init__(data)


def load_environment(path: Optional[Path] = None) -> ConfigProvider:
    """Load the environment store.

    Uses path, else the file named by $BATCHLINE_CONFIG. Without either, an
    empty environment is returned so every lookup misses.
    """
    if path is None:
        env_path = os.getenv(CONFIG_PATH_ENV_VAR)
        if not env_path:
            logger.debug("No environment file configured, using empty environment")
            return DictEnvironment()
        path = Path(env_path)

    return YamlEnvironment(path)


_environment: Optional[ConfigProvider] = None


def get_environment() -> ConfigProvider:
    """Get or load the singleton environment store."""
    global _environment
    if _environment is None:
        _environment = load_environment()
    return _environment


def set_environment(environment: ConfigProvider) -> None:
    """Set the singleton environment store (useful for testing)."""
    global _environment
    _environment = environment


def reset_environment() -> None:
    """Reset the singleton environment (forces reload on next get_environment() call)."""
    global _environment
    _environment = None
