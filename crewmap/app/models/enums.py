"""
Tracking enumerations.

Defines wire protocols and presence buckets.
"""

import enum


class Protocol(str, enum.Enum):
    """
    Inbound wire protocol a fix arrived on.

    Protocols:
        OSMAND: single fix in the query string (id/deviceid, epoch timestamp)
        OVERLAND: GeoJSON batch of fixes in a JSON body
        TRACCAR: single fix via query string or form body, GET or POST
    """
    OSMAND = "OSMAND"
    OVERLAND = "OVERLAND"
    TRACCAR = "TRACCAR"


class PresenceStatus(str, enum.Enum):
    """
    Recency bucket derived from the latest sample time.

    Ordered from most to least recent. Never stored.
    """
    LIVE = "live"
    ACTIVE = "active"
    INACTIVE = "inactive"
    OFFLINE = "offline"

    @property
    def rank(self) -> int:
        """0 for LIVE up to 3 for OFFLINE."""
        return list(PresenceStatus).index(self)
