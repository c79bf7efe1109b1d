"""
KV-Exerciser Configuration Settings

This module contains all configuration constants for the exerciser.
Values can be overridden through environment variables or command-line flags.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Exerciser configuration settings."""

    # Connection settings
    HOST: str = os.environ.get("KV_EXERCISER_HOST", "localhost")
    PORT: int = int(os.environ.get("KV_EXERCISER_PORT", "7171"))
    TIMEOUT: float = float(os.environ.get("KV_EXERCISER_TIMEOUT", "5.0"))
    BACKEND: str = os.environ.get("KV_EXERCISER_BACKEND", "tcp")  # tcp | memory

    # Protocol limits
    MAX_KEY_LENGTH: int = 256
    MAX_VALUE_LENGTH: int = 256
    READ_BUFFER_SIZE: int = 4096

    # In-memory backend
    MEMORY_MAX_KEYS: int = int(os.environ.get("KV_EXERCISER_MEMORY_MAX_KEYS", "10000"))

    # Workload settings
    MAX_WORKERS: int = int(os.environ.get("KV_EXERCISER_MAX_WORKERS", "64"))
    POLL_INTERVAL: float = 1.0  # Expiration monitor period, seconds
    PROGRESS_EVERY: int = 500  # Rapid-fire progress report period, steps

    # Session settings
    DEFAULT_CLIENT_NAME: str = "Default"

    # Logging settings
    DEBUG: bool = os.environ.get("KV_EXERCISER_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KV_EXERCISER_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
