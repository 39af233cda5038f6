"""
Storage Module
Result cache for completed analyses.
"""
from .cache import DEFAULT_TTL_S, ResultCache

__all__ = [
    "DEFAULT_TTL_S",
    "ResultCache",
]
