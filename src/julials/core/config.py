"""Configuration management.

Loads and merges configuration from multiple sources with proper precedence.
"""

import json
import os
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config_loader import deep_merge, load_json_file
from .config_schema import Config, JuliaConfig, LoggingConfig
from .global_paths import GlobalPath
from ..util.log import Log

log = Log.create({"service": "config"})

__all__ = [
    "Config",
    "ConfigError",
    "ConfigManager",
    "JuliaConfig",
    "LoggingConfig",
]

CONFIG_FILENAMES = ("julials.json", "julials.jsonc")


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Config error in {path}: {message}")


_config_var: ContextVar['ConfigManager'] = ContextVar('_config_var')


class ConfigManager:
    """Configuration management.

    Instance-based with ContextVar for scoping; class methods delegate to
    the current instance.

    Sources, lowest precedence first:
    1. Global config (``<config dir>/julials.json``)
    2. Project configs (``julials.json`` from the filesystem root down to
       the working directory)
    3. ``JULIALS_CONFIG_CONTENT`` environment variable
    """

    def __init__(self) -> None:
        self._cache: Optional[Config] = None
        self._sources: List[str] = []

    @classmethod
    def current(cls) -> 'ConfigManager':
        try:
            return _config_var.get()
        except LookupError:
            instance = cls()
            _config_var.set(instance)
            return instance

    @classmethod
    def provide(cls, instance: 'ConfigManager') -> Token['ConfigManager']:
        return _config_var.set(instance)

    @classmethod
    def restore(cls, token: Token['ConfigManager']) -> None:
        _config_var.reset(token)

    @classmethod
    def reset(cls) -> None:
        """Reset cached configuration."""
        inst = cls.current()
        inst._cache = None
        inst._sources = []

    @classmethod
    async def load(cls, directory: str = ".") -> Config:
        return await cls.current()._load(directory)

    @classmethod
    async def get(cls) -> Config:
        inst = cls.current()
        if inst._cache is None:
            return await inst._load()
        return inst._cache

    @classmethod
    def sources(cls) -> List[str]:
        """Files that contributed to the cached configuration."""
        return cls.current()._sources.copy()

    async def _load(self, directory: str = ".") -> Config:
        if self._cache is not None:
            return self._cache

        result: Dict[str, Any] = {}
        sources: List[str] = []

        def apply(filepath: str, kind: str) -> None:
            nonlocal result
            data = load_json_file(filepath)
            if not data:
                return
            result = deep_merge(result, data)
            sources.append(filepath)
            log.info(f"loaded {kind} config", {"path": filepath})

        for filename in CONFIG_FILENAMES:
            apply(os.path.join(GlobalPath.config(), filename), "global")

        # Walk up from the directory; apply the outermost file first.
        current = Path(directory).resolve()
        project_files: List[str] = []
        while True:
            for filename in CONFIG_FILENAMES:
                candidate = current / filename
                if candidate.is_file():
                    project_files.append(str(candidate))
            if current == current.parent:
                break
            current = current.parent

        for filepath in reversed(project_files):
            apply(filepath, "project")

        env_config = os.environ.get("JULIALS_CONFIG_CONTENT")
        if env_config:
            try:
                data = json.loads(env_config)
            except json.JSONDecodeError:
                log.error("failed to parse JULIALS_CONFIG_CONTENT")
            else:
                if isinstance(data, dict):
                    result = deep_merge(result, data)
                    log.info("loaded config from JULIALS_CONFIG_CONTENT")

        try:
            config = Config.model_validate(result)
        except ValueError as e:
            raise ConfigError(sources[-1] if sources else "<defaults>", str(e)) from e

        self._sources = sources
        self._cache = config
        return config
