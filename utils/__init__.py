"""
Utils Module
Logging and exception helpers.
"""
from .logger import setup_logger, get_logger, setup_package_loggers
from .exceptions import (
    UCIEError,
    ValidationError,
    ConfigurationError,
    TriggerError,
    TransientPollError,
    RemoteFailure,
    PollTimeout,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "setup_package_loggers",
    "UCIEError",
    "ValidationError",
    "ConfigurationError",
    "TriggerError",
    "TransientPollError",
    "RemoteFailure",
    "PollTimeout",
]
