"""
Server configuration.

Merge order (later overrides earlier):
1. ``ServerConfig`` defaults
2. ``.env`` file (``ROUTINA_*`` keys)
3. Environment variables (``ROUTINA_*`` keys)
4. Manual overrides
"""

import json
import logging
import os
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import dotenv_values


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class ServerConfig:
    """Settings for one server process."""

    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "sqlite:///routina.db"
    root_dir: str = field(default_factory=os.getcwd)
    compression_min_size: int = 500
    max_body_size: int = 100 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    access_log: bool = True
    password_time_cost: int = 2
    password_memory_cost: int = 65536

    @property
    def root_path(self) -> Path:
        return Path(self.root_dir)


class ConfigLoader:
    """
    Builds a :class:`ServerConfig` from defaults, ``.env``, the process
    environment and explicit overrides.
    """

    def __init__(self, env_prefix: str = "ROUTINA_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = ".env",
        env_prefix: str = "ROUTINA_",
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> ServerConfig:
        """
        Load configuration.

        Args:
            env_file: Path to .env file (skipped when missing or None)
            env_prefix: Prefix for environment variables
            overrides: Manual overrides (highest precedence)
            environ: Environment mapping; defaults to ``os.environ``

        Raises:
            ConfigError: unknown override key or a value of the wrong type
        """
        loader = cls(env_prefix=env_prefix)

        if env_file and Path(env_file).is_file():
            loader._load_mapping(dotenv_values(env_file))

        loader._load_mapping(os.environ if environ is None else environ)

        for key, value in (overrides or {}).items():
            if key not in loader._field_types():
                raise ConfigError(f"Unknown config field '{key}'")
            if value is not None:
                loader.config_data[key] = value

        return loader.build()

    def _field_types(self) -> Dict[str, Any]:
        return {f.name: f.type for f in fields(ServerConfig)}

    def _load_mapping(self, values: Mapping[str, Optional[str]]) -> None:
        known = self._field_types()
        for key, value in values.items():
            if not key.startswith(self.env_prefix) or value is None:
                continue
            name = key[len(self.env_prefix):].lower()
            if name in known:
                self.config_data[name] = value

    def build(self) -> ServerConfig:
        kwargs = {}
        for f in fields(ServerConfig):
            if f.name in self.config_data:
                kwargs[f.name] = self._coerce(f.name, self.config_data[f.name], f.type)
            elif f.default is MISSING and f.default_factory is MISSING:
                raise ConfigError(f"Required config field '{f.name}' not provided")
        return ServerConfig(**kwargs)

    @staticmethod
    def _coerce(name: str, value: Any, expected: Any) -> Any:
        """Convert a raw (usually string) value to the field's type."""
        try:
            if expected is bool:
                if isinstance(value, bool):
                    return value
                lowered = str(value).strip().lower()
                if lowered in ("true", "yes", "1", "on"):
                    return True
                if lowered in ("false", "no", "0", "off", ""):
                    return False
                raise ValueError(value)
            if expected is int:
                if isinstance(value, bool):
                    raise ValueError(value)
                return int(value)
            if expected == List[str]:
                if isinstance(value, str):
                    value = value.strip()
                    if value.startswith("["):
                        value = json.loads(value)
                    else:
                        value = [v.strip() for v in value.split(",") if v.strip()]
                if not isinstance(value, (list, tuple)):
                    raise ValueError(value)
                return [str(v) for v in value]
            return str(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"Config field '{name}' expected {getattr(expected, '__name__', expected)}, "
                f"got {value!r}"
            ) from e


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the server process."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigError(f"Unknown log level '{level}'")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("routina").setLevel(numeric)
