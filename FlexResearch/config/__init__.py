"""FlexResearch runtime settings."""

from .settings import (
    AdmissionSettings,
    BatchSettings,
    CompletionSettings,
    PurposeParameters,
    DEFAULT_PURPOSES,
    Settings,
    SettingsLoader,
    get_settings,
)

__all__ = [
    "AdmissionSettings",
    "BatchSettings",
    "CompletionSettings",
    "PurposeParameters",
    "DEFAULT_PURPOSES",
    "Settings",
    "SettingsLoader",
    "get_settings",
]
