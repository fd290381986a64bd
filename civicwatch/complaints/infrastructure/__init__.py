"""
Complaints Infrastructure Layer
================================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations
"""

from civicwatch.complaints.infrastructure.models import (
    AuditEntryModel,
    ComplaintModel,
    TimelineEntryModel,
)
from civicwatch.complaints.infrastructure.repositories import SQLAlchemyComplaintRepository

__all__ = [
    "AuditEntryModel",
    "ComplaintModel",
    "TimelineEntryModel",
    "SQLAlchemyComplaintRepository",
]
