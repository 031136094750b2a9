"""Configuration persistence."""

from .repository import ConfigRepository

__all__ = ["ConfigRepository"]
