"""Configuration package for the organization engine."""

from .engine_settings import EngineSettings, get_engine_settings, reload_settings

__all__ = ["EngineSettings", "get_engine_settings", "reload_settings"]
