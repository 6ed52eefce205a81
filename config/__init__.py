"""
Configuration module for the storefront location engine
Provides centralized settings management using Pydantic BaseSettings
"""

from .settings import settings, get_settings, Settings

__all__ = ["settings", "get_settings", "Settings"]
