"""Remote job kinds sequenced by an analysis session."""

from .base import BaseJobKind, normalize_remote_status, require_subject
from .client import UCIEClient, decode_result
from .collection import DataCollectionJob
from .research import CaesarResearchJob, parse_research
from .summary import AISummaryJob

__all__ = [
    "AISummaryJob",
    "BaseJobKind",
    "CaesarResearchJob",
    "DataCollectionJob",
    "UCIEClient",
    "decode_result",
    "normalize_remote_status",
    "parse_research",
    "require_subject",
]
