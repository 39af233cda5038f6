"""
Settings Configuration
Pydantic-validated configuration for the UCIE orchestration layer.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from core import PollOptions


class ApiSettings(BaseSettings):
    """UCIE backend connection"""
    base_url: str = Field(default="http://localhost:3000", description="UCIE API base URL")
    request_timeout: float = Field(default=30.0, description="Per-request timeout (seconds)")

    class Config:
        env_prefix = "UCIE_API_"


class _PollSettings(BaseSettings):
    interval_s: float = Field(default=5.0, ge=0.0, description="Seconds between status queries")
    max_attempts: int = Field(default=36, ge=1, description="Status queries before timing out")
    initial_delay_s: float = Field(default=0.0, ge=0.0, description="Wait before the first query")

    def to_options(self) -> PollOptions:
        return PollOptions(
            interval_s=self.interval_s,
            max_attempts=self.max_attempts,
            initial_delay_s=self.initial_delay_s,
        )


class CollectionPollSettings(_PollSettings):
    """Data collection status polling"""
    interval_s: float = Field(default=2.0, ge=0.0)
    max_attempts: int = Field(default=60, ge=1)
    initial_delay_s: float = Field(default=3.0, ge=0.0)

    class Config:
        env_prefix = "UCIE_COLLECTION_"


class SummaryPollSettings(_PollSettings):
    """AI summary polling (36 x 5s = 3 minutes)"""
    interval_s: float = Field(default=5.0, ge=0.0)
    max_attempts: int = Field(default=36, ge=1)

    class Config:
        env_prefix = "UCIE_SUMMARY_"


class ResearchPollSettings(_PollSettings):
    """Caesar deep research polling (10 x 60s = 10 minutes)"""
    interval_s: float = Field(default=60.0, ge=0.0)
    max_attempts: int = Field(default=10, ge=1)
    compute_units: int = Field(default=5, ge=1, le=10, description="Caesar compute units")

    class Config:
        env_prefix = "UCIE_RESEARCH_"


class CacheSettings(BaseSettings):
    """Result cache"""
    ttl_s: int = Field(default=24 * 3600, ge=1, description="Result time-to-live (seconds)")
    max_size: int = Field(default=1000, ge=1, description="Maximum cached subjects")

    class Config:
        env_prefix = "UCIE_CACHE_"


class Settings(BaseSettings):
    """Aggregate of all sub-settings"""

    api: ApiSettings = Field(default_factory=ApiSettings)
    collection: CollectionPollSettings = Field(default_factory=CollectionPollSettings)
    summary: SummaryPollSettings = Field(default_factory=SummaryPollSettings)
    research: ResearchPollSettings = Field(default_factory=ResearchPollSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings, reading ``config/.env`` first when present."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            api=ApiSettings(),
            collection=CollectionPollSettings(),
            summary=SummaryPollSettings(),
            research=ResearchPollSettings(),
            cache=CacheSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.load_from_env_file()


def get_api_settings() -> ApiSettings:
    return get_settings().api


def get_cache_settings() -> CacheSettings:
    return get_settings().cache
