"""
Audit Log Database Model.

Tracks crew lifecycle events (crew created, driver joined, driver deactivated).
"""

from sqlalchemy import Column, Integer, String, JSON
from sqlalchemy.sql import func
from crewmap.app.core.clock import utcnow
from crewmap.app.db.session import Base, UTCDateTime


class AuditLog(Base):
    """
    Audit log model for crew membership changes.

    Location ingestion is never audited; the sample rows are their own record.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which crew / driver it concerned
    crew_id = Column(String(36), index=True, nullable=True)
    driver_id = Column(String(36), index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', crew={self.crew_id}, driver={self.driver_id})>"
