"""Restyle - re-render uploaded images in named art styles and browse them by session."""

__version__ = "0.1.0"

from restyle.core.config import RestyleConfig, config

__all__ = [
    "RestyleConfig",
    "config",
]
