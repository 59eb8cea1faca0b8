"""
Driver database model.

One tracked participant (and device) within a crew.
"""

import uuid
from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from crewmap.app.core.clock import utcnow
from crewmap.app.db.session import Base, UTCDateTime


class Driver(Base):
    """
    Driver model.

    Drivers are never hard-deleted, only deactivated. `last_seen` is the
    time the server last accepted a fix from this driver, not the fix time.
    """
    __tablename__ = "drivers"
    __table_args__ = (
        # Composite "CREWCODE:nickname" resolution needs one match per crew
        UniqueConstraint("crew_id", "nickname", name="uq_driver_crew_nickname"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    crew_id = Column(String(36), ForeignKey('crews.id'), nullable=False, index=True)

    nickname = Column(String(50), nullable=False)
    color = Column(String(7), nullable=False)  # "#RRGGBB"

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    last_seen = Column(UTCDateTime, nullable=True)

    def __repr__(self):
        return f"<Driver(id={self.id}, nickname='{self.nickname}', crew_id={self.crew_id})>"
