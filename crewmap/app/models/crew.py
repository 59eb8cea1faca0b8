"""
Crew database model.

A crew is a group of drivers sharing one map and trail view.
"""

import uuid
from sqlalchemy import Column, String
from sqlalchemy.sql import func
from crewmap.app.core.clock import utcnow
from crewmap.app.db.session import Base, UTCDateTime


class Crew(Base):
    """
    Crew model.

    `code` is the only identifier a human types. It is stored upper-case
    so lookups are case-insensitive and the unique index covers both cases.
    """
    __tablename__ = "crews"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(32), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    expires_at = Column(UTCDateTime, nullable=True)

    def __repr__(self):
        return f"<Crew(id={self.id}, code='{self.code}')>"
