"""Forge - quality-gated multi-agent workflow core."""

__version__ = "0.1.0"
