"""Configuration module"""
from config.settings import Settings, settings
from config.logging import setup_logging

__all__ = ["Settings", "settings", "setup_logging"]
