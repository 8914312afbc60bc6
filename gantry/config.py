"""
Config system - typed application configuration with layered loading.

Merge order (later overrides earlier):
1. ``AppConfig`` defaults
2. ``.env`` file (``GANTRY_*`` keys)
3. Process environment (``GANTRY_*`` keys)
4. Manual overrides
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values


ENVIRONMENTS = ("development", "production", "test")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class AppConfig:
    """
    Application settings.

    Attributes:
        env: ``development``, ``production`` or ``test``
        host: Bind host for ``listen()``
        port: Bind port for ``listen()``
        global_prefix: Prefix prepended to every controller route
        body_parser: Parse JSON / url-encoded bodies before dispatch
        max_body_size: Request body limit in bytes (413 above it)
        welcome_route: Register the default ``GET /`` route
        log_level: Level passed to ``logging.basicConfig`` by ``listen()``
    """
    env: str = "development"
    host: str = "127.0.0.1"
    port: int = 3000
    global_prefix: str = ""
    body_parser: bool = True
    max_body_size: int = 10 * 1024 * 1024
    welcome_route: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        if self.env not in ENVIRONMENTS:
            raise ConfigError(
                f"Unknown environment '{self.env}', expected one of {', '.join(ENVIRONMENTS)}"
            )
        if not 0 <= int(self.port) <= 65535:
            raise ConfigError(f"Port out of range: {self.port}")
        if int(self.max_body_size) <= 0:
            raise ConfigError("max_body_size must be positive")

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_test(self) -> bool:
        return self.env == "test"

    def with_overrides(self, **overrides: Any) -> "AppConfig":
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class ConfigLoader:
    """
    Loads ``AppConfig`` from defaults, ``.env``, environment and overrides.

    Example:
        config = ConfigLoader.load(env_file=".env", overrides={"port": 8080})
    """

    def __init__(self, env_prefix: str = "GANTRY_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = None,
        env_prefix: str = "GANTRY_",
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> AppConfig:
        loader = cls(env_prefix=env_prefix)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader.config_data.update(overrides)

        return loader.build()

    def _load_env_file(self, path: str) -> None:
        """Load ``GANTRY_*`` keys from a .env file, if present."""
        env_path = Path(path)
        if not env_path.exists():
            return
        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set(key, value)

    def _load_from_env(self, environ: Dict[str, str]) -> None:
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set(key, value)

    def _set(self, key: str, value: str) -> None:
        """``GANTRY_MAX_BODY_SIZE=1024`` → ``config_data["max_body_size"] = 1024``."""
        self.config_data[key[len(self.env_prefix):].lower()] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
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

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def build(self) -> AppConfig:
        """Instantiate ``AppConfig`` with type coercion for known fields."""
        kwargs: Dict[str, Any] = {}
        for field_info in fields(AppConfig):
            if field_info.name not in self.config_data:
                continue
            kwargs[field_info.name] = self._coerce(field_info.name, self.config_data[field_info.name])
        return AppConfig(**kwargs)

    @staticmethod
    def _coerce(name: str, value: Any) -> Any:
        default = getattr(AppConfig, name)
        try:
            if isinstance(default, bool):
                if isinstance(value, str):
                    return value.lower() in ("true", "yes", "1", "on")
                return bool(value)
            if isinstance(default, int):
                return int(value)
            if isinstance(default, str):
                return str(value)
        except (TypeError, ValueError):
            raise ConfigError(
                f"Config field '{name}' expected {type(default).__name__}, got {value!r}"
            ) from None
        return value
