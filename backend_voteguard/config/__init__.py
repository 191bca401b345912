"""
Configuration management for Backend VoteGuard.

Loads settings from environment variables and the optional project .env file.
Exposes a single source of truth for all service configuration.
"""

from backend_voteguard.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
