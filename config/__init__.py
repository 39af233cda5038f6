"""
Configuration Management Module
Environment-driven settings for API access, polling budgets and caching.
"""
from .settings import (
    Settings,
    ApiSettings,
    CacheSettings,
    CollectionPollSettings,
    ResearchPollSettings,
    SummaryPollSettings,
    get_settings,
    get_api_settings,
    get_cache_settings,
)

__all__ = [
    "Settings",
    "ApiSettings",
    "CacheSettings",
    "CollectionPollSettings",
    "ResearchPollSettings",
    "SummaryPollSettings",
    "get_settings",
    "get_api_settings",
    "get_cache_settings",
]
