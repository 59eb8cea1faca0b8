"""
Location sample database model.

Canonical, protocol-agnostic position record. Append-only.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Index
from crewmap.app.db.session import Base, UTCDateTime


class LocationSample(Base):
    """
    Location sample model.

    Immutable once written. Ordering key is `timestamp` (source reported),
    never `id` or `received_at`, since batching and retries reorder inserts.
    `crew_id` is copied from the driver at write time.
    """
    __tablename__ = "locations"
    __table_args__ = (
        Index("ix_locations_crew_timestamp", "crew_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    driver_id = Column(String(36), ForeignKey('drivers.id'), nullable=False, index=True)
    crew_id = Column(String(36), ForeignKey('crews.id'), nullable=False)

    # GPS coordinates
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=True)  # meters
    speed = Column(Float, nullable=True)  # meters per second
    heading = Column(Float, nullable=True)  # degrees, 0 = north
    altitude = Column(Float, nullable=True)  # meters

    # Timing
    timestamp = Column(UTCDateTime, nullable=False)  # When the device took the fix
    received_at = Column(UTCDateTime, nullable=False)  # When the server accepted it

    def __repr__(self):
        return f"<LocationSample(driver_id={self.driver_id}, lat={self.latitude}, lng={self.longitude})>"
