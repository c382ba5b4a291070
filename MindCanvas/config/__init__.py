"""
MindCanvas Configuration Module.

Provides:
- AppSettings and its sections (AIConfiguration, PacingConfig, GovernorConfig)
- load_settings: YAML + environment loader
- validate_settings / is_ai_available
"""

from .settings import (
    AIConfiguration,
    PacingConfig,
    GovernorConfig,
    AppSettings,
    ConfigValidation,
    load_settings,
    validate_settings,
    is_ai_available,
)

__all__ = [
    "AIConfiguration",
    "PacingConfig",
    "GovernorConfig",
    "AppSettings",
    "ConfigValidation",
    "load_settings",
    "validate_settings",
    "is_ai_available",
]
