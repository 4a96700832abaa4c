"""Configuration management."""

from forge.config.manager import ConfigManager
from forge.config.schema import WorkflowConfig

__all__ = ["ConfigManager", "WorkflowConfig"]
