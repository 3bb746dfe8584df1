# Configuration package
"""
Configuration package for the payment API
Exports settings from settings.py for easy import
"""
from .settings import Settings, apply_environment_overrides, settings, validate_settings

__all__ = ["Settings", "apply_environment_overrides", "settings", "validate_settings"]
