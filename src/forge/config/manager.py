"""Layered forge configuration: defaults, user file, project file."""

import logging
from pathlib import Path
from typing import Any, Iterator

import toml

from forge.config.schema import WorkflowConfig, get_config_file

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".forge.toml"


class ConfigManager:
    """Process-wide access to the active ``WorkflowConfig``.

    Later sources win: built-in defaults, then ``~/.config/forge/config.toml``,
    then the nearest ``.forge.toml`` between the cwd and the home directory.
    """

    _instance: "ConfigManager | None" = None
    _config: WorkflowConfig | None = None

    def __new__(cls) -> "ConfigManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def get_config(cls) -> WorkflowConfig:
        if cls._config is None:
            cls._config = cls.load_config()
        return cls._config

    @classmethod
    def load_config(cls) -> WorkflowConfig:
        merged: dict[str, Any] = {}
        for label, path in cls._config_files():
            logger.debug(f"Loading {label} config from {path}")
            merged = cls._deep_merge(merged, toml.load(path))
        return WorkflowConfig.model_validate(merged) if merged else WorkflowConfig.default()

    @classmethod
    def reload(cls) -> WorkflowConfig:
        cls._config = cls.load_config()
        return cls._config

    @classmethod
    def reset(cls) -> None:
        """Forget the cached config; the next ``get_config`` reads disk again."""
        cls._config = None

    @classmethod
    def _config_files(cls) -> Iterator[tuple[str, Path]]:
        user_file = get_config_file()
        if user_file.exists():
            yield "user", user_file
        project_file = cls._find_project_config()
        if project_file is not None:
            yield "project", project_file

    @classmethod
    def _find_project_config(cls, start: Path | None = None) -> Path | None:
        """Nearest project file from ``start`` (default cwd) up to the home dir."""
        here = start or Path.cwd()
        home = Path.home()
        for directory in (here, *here.parents):
            candidate = directory / PROJECT_CONFIG_NAME
            if candidate.exists():
                return candidate
            if directory == home:
                return None
        return None

    @classmethod
    def _deep_merge(cls, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        merged = dict(base)
        for key, value in override.items():
            nested = merged.get(key)
            merged[key] = cls._deep_merge(nested, value) if isinstance(nested, dict) and isinstance(value, dict) else value
        return merged

    @classmethod
    def save_user_config(cls, config: WorkflowConfig) -> Path:
        config_file = get_config_file()
        with open(config_file, "w") as f:
            toml.dump(config.model_dump(exclude_none=True), f)
        return config_file

    @classmethod
    def set_value(cls, key_path: str, value: Any) -> None:
        """Set one value by dotted path, e.g. ``set_value("retry.max_revisions", 2)``.

        Raises:
            KeyError: If the path names no existing config key
            pydantic.ValidationError: If the new value is invalid; nothing is saved
        """
        data = cls.get_config().model_dump()
        *sections, leaf = key_path.split(".")

        section = data
        for name in sections:
            if not isinstance(section.get(name), dict):
                raise KeyError(f"Unknown config section: {name}")
            section = section[name]
        if leaf not in section:
            raise KeyError(f"Unknown config key: {key_path}")
        section[leaf] = value

        cls._config = WorkflowConfig.model_validate(data)
        cls.save_user_config(cls._config)
        logger.info(f"Config {key_path} set to {value!r}")

    @classmethod
    def get_value(cls, key_path: str, default: Any = None) -> Any:
        current: Any = cls.get_config().model_dump()
        for name in key_path.split("."):
            if not isinstance(current, dict) or name not in current:
                return default
            current = current[name]
        return current
