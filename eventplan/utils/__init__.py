"""
Utility modules for the EventPlan core.

- logging_config: Structured logging (JSON in production, console otherwise)
"""

from eventplan.utils.logging_config import configure_logging, get_logger

__all__ = [
    "get_logger",
    "configure_logging",
]
