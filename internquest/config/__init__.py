"""Configuration module for the InternQuest admin backend."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
