"""Configuration module for KV-Exerciser."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
