"""Configuration loader with multi-source support."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Generic, Optional, Type, TypeVar

import platformdirs
import toml
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)


class ConfigLoader(Generic[T]):
    """Loads configuration from multiple sources with priority.

    Sources, lowest priority first:
        1. defaults file (explicit path, or ./config/defaults.toml)
        2. system config (/etc/<app>/config.toml or %PROGRAMDATA%)
        3. user config (platformdirs user config dir)
        4. environment variables: <APP>_<SECTION>__<KEY>, e.g.
           ZIPFLOW_UNZIP__CHUNK_SIZE=4096
    """

    def __init__(self, config_class: Type[T], app_name: str = "zipflow") -> None:
        self.app_name = app_name
        self.config_class = config_class

    def load(self, defaults_path: Optional[Path] = None) -> T:
        """Load configuration from all sources.

        Args:
            defaults_path: Optional path to a toml file with defaults

        Returns:
            Validated configuration object

        Raises:
            pydantic.ValidationError: If the merged values are invalid
        """
        config_dict = self._load_defaults(defaults_path)

        for source in (self._load_system_config(), self._load_user_config()):
            if source:
                config_dict = self._deep_merge(config_dict, source)

        config_dict = self._apply_env_overrides(config_dict)

        return self.config_class(**config_dict)

    def _load_defaults(self, defaults_path: Optional[Path] = None) -> Dict[str, Any]:
        """Load defaults from an explicit file or the working directory."""
        if defaults_path is not None:
            # An explicit path that does not exist is a user error
            return toml.load(defaults_path)

        cwd_defaults = Path.cwd() / "config" / "defaults.toml"
        if cwd_defaults.exists():
            return toml.load(cwd_defaults)

        return {}

    def _load_system_config(self) -> Optional[Dict[str, Any]]:
        """Load system-wide configuration."""
        if os.name == "nt":
            system_path = (
                Path(os.environ.get("PROGRAMDATA", "C:\\ProgramData"))
                / self.app_name
                / "config.toml"
            )
        else:
            system_path = Path(f"/etc/{self.app_name}/config.toml")

        if system_path.exists():
            return toml.load(system_path)

        return None

    def _load_user_config(self) -> Optional[Dict[str, Any]]:
        """Load user-specific configuration."""
        user_config_dir = platformdirs.user_config_dir(appname=self.app_name, appauthor=False)
        user_config_path = Path(user_config_dir) / "config.toml"

        if user_config_path.exists():
            logger.debug(f"Loading user config from {user_config_path}")
            return toml.load(user_config_path)

        logger.debug(f"User config not found at {user_config_path}")
        return None

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Override config with environment variables."""
        prefix = f"{self.app_name.upper().replace('-', '_')}_"

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue

            # ZIPFLOW_UNZIP__MAX_NAME_EXTRA_LENGTH -> unzip.max_name_extra_length
            key_path = env_key[len(prefix):].lower().split("__")
            if len(key_path) < 2 or not all(key_path):
                logger.debug(f"Ignoring environment variable without section: {env_key}")
                continue

            current = config
            for part in key_path[:-1]:
                current = current.setdefault(part, {})

            current[key_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str) -> Any:
        """Convert string environment variable to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        return value
