"""SQLAlchemy models for the distribution ledger."""

from pressledger.models.actor import Actor
from pressledger.models.distribution_record import DistributionRecord

__all__ = [
    "Actor",
    "DistributionRecord",
]
