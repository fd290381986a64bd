"""
Complaints Infrastructure Models
=================================

SQLAlchemy ORM models for the complaints module.

Audit and timeline entries live in their own append-only tables keyed by
(complaint_id, seq); `seq` comes from the database, so insertion order is
the read order.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from civicwatch.infrastructure.database import Base, UTCDateTime


class ComplaintModel(Base):
    """
    Database model for Complaint entity.

    Maps to the 'complaints' table.
    """
    __tablename__ = "complaints"

    # Primary key (UUID4 string)
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Submission context
    citizen_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    citizen_name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    location_name: Mapped[str] = mapped_column(String(500), nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Classification outcome
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    authenticity_status: Mapped[str] = mapped_column(String(20), nullable=False)
    agent_decision: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_escalation_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    assigned_official_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        # Watchdog scan: status != resolved AND next_escalation_at <= now
        Index("ix_complaints_status_deadline", "status", "next_escalation_at"),
    )


class AuditEntryModel(Base):
    """Maps to the 'complaint_audit' table."""
    __tablename__ = "complaint_audit"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    complaint_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    actor: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_complaint_audit_complaint_seq", "complaint_id", "seq"),
    )


class TimelineEntryModel(Base):
    """Maps to the 'complaint_timeline' table."""
    __tablename__ = "complaint_timeline"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    complaint_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        Index("ix_complaint_timeline_complaint_seq", "complaint_id", "seq"),
    )
