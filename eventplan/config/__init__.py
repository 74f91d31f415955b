"""
Configuration module for the EventPlan core.
"""

from eventplan.config.settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
