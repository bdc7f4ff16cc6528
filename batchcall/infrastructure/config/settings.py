"""Provides the engine configuration value and the layered settings loader.

Supports loading from .env files, environment variables, and a dedicated
configuration file (e.g., ~/.batchcall/config.yaml). The engine itself never
reads these sources directly: a ``ConfigStore`` is built once from them and
passed to the request client and the worker pool.
"""

import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from batchcall.domain.interfaces.config import ConfigurationProvider

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".batchcall"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "BATCHCALL_"

# camelCase spellings accepted by set_config
KEY_ALIASES = {
    "throttleMs": "throttle_ms",
    "timeoutMs": "timeout_ms",
    "maxRetry": "max_retry",
}


@dataclass(frozen=True)
class EngineConfig:
    """Settings read by the request client and the worker pool.

    Values are not validated; callers are responsible for sane numbers.
    """
    concurrency: int = 6
    throttle_ms: int = 0
    timeout_ms: int = 10000
    max_retry: int = 4

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


ENGINE_KEYS = tuple(f.name for f in fields(EngineConfig))


class ConfigStore:
    """Holds the current EngineConfig and hands out immutable snapshots."""

    def __init__(self, initial: Optional[EngineConfig] = None):
        self._current = initial or EngineConfig()

    def set_config(self, partial: Optional[Mapping[str, Any]] = None) -> EngineConfig:
        """Merges the known keys of ``partial`` over the current values.

        Unknown keys are ignored. Work that already took a snapshot keeps
        the values it started with.

        Args:
            partial: Mapping with any of concurrency, throttle_ms, timeout_ms,
                max_retry (or their camelCase spellings).

        Returns:
            The new configuration snapshot.
        """
        updates: Dict[str, Any] = {}
        for key, value in (partial or {}).items():
            name = KEY_ALIASES.get(key, key)
            if name in ENGINE_KEYS:
                updates[name] = value
            else:
                logger.debug(f"Ignoring unknown config key: {key}")
        if updates:
            self._current = replace(self._current, **updates)
            logger.debug(f"Engine config updated: {updates}")
        return self._current

    def get_config(self) -> EngineConfig:
        """Returns a snapshot of the current configuration."""
        return self._current


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _coerce(value: str) -> Any:
    """Converts common scalar spellings found in env files."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def _as_int(raw: Any) -> Optional[int]:
    """Whole numbers only; booleans and fractional values are rejected."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    return None


def _env_key(key: str) -> str:
    return ENV_PREFIX + key.upper().replace('.', '_')


class Settings(ConfigurationProvider):
    """Layered configuration.

    Priority order (highest to lowest):
    1. Environment Variables (BATCHCALL_ENGINE_CONCURRENCY, ...)
    2. .env file
    3. YAML configuration file
    4. Default values
    """

    def __init__(
        self,
        config_file: Optional[Path] = DEFAULT_CONFIG_FILE,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config_file = config_file
        self.env_file = env_file
        self._environ = os.environ if environ is None else environ
        self._yaml: Dict[str, Any] = {}
        self._dotenv: Dict[str, Optional[str]] = {}
        self._loaded = False

    def load_config(self) -> None:
        self._yaml = {}
        self._dotenv = {}

        # 1. YAML file (lowest priority)
        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load or parse YAML config {self.config_file}: {e}")
            else:
                if isinstance(yaml_config, dict):
                    self._yaml = yaml_config
                    logger.info(f"Loaded configuration from YAML: {self.config_file}")
                elif yaml_config is not None:
                    logger.warning(f"YAML config file {self.config_file} did not contain a mapping.")
        elif self.config_file:
            logger.debug(f"YAML config file not found: {self.config_file}")

        # 2. .env file (medium priority); read without touching os.environ
        dotenv_path = self.env_file or find_dotenv_path()
        if dotenv_path and Path(dotenv_path).is_file():
            self._dotenv = dict(dotenv_values(dotenv_path))
            logger.info(f"Loaded environment values from: {dotenv_path}")
        else:
            logger.debug("No .env file found.")

        self._loaded = True

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        if not self._loaded:
            self.load_config()

        env_key = _env_key(key)
        if env_key in self._environ:
            return _coerce(self._environ[env_key])
        value = self._dotenv.get(env_key)
        if value is not None:
            return _coerce(value)

        node: Any = self._yaml
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def engine_config(self) -> EngineConfig:
        """Builds an EngineConfig from the ``engine.*`` keys."""
        values: Dict[str, Any] = {}
        for name in ENGINE_KEYS:
            raw = self.get(f"engine.{name}")
            if raw is None:
                continue
            value = _as_int(raw)
            if value is None:
                logger.warning(f"Ignoring engine.{name}={raw!r}: not an integer")
                continue
            values[name] = value
        return EngineConfig(**values)
