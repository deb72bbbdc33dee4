"""Configuration-layer exceptions."""

from __future__ import annotations


class ConfigError(Exception):
    """Invalid flags, unreadable config, or missing credentials."""
