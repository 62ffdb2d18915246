"""SQLAlchemy ORM models."""

from trustgate.models.base import Base
from trustgate.models.governance import GovernanceRule
from trustgate.models.radar import (
    MarketplaceDomainScore,
    OssDomainScore,
    RadarHistory,
    RadarState,
    RepositoryDomainScore,
)
from trustgate.models.scan import Scan, Vulnerability

__all__ = [
    "Base",
    "GovernanceRule",
    "MarketplaceDomainScore",
    "OssDomainScore",
    "RadarHistory",
    "RadarState",
    "RepositoryDomainScore",
    "Scan",
    "Vulnerability",
]
