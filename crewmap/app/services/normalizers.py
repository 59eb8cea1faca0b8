"""
Protocol normalizers.

Three wire formats, one output: each parse function turns a protocol's
payload into a RawFix tagged with its Protocol. All of them funnel through
`_build_fix`, so required-field and number handling is identical:

- identifier, lat and lon are required; coordinates must be finite numbers
- optional numbers (speed, heading, accuracy, altitude) that do not parse
  are dropped, never an error; negative speed/accuracy means "unknown"
- a missing timestamp means "now" (receipt time)

Protocol A (OsmAnd):  ?id|deviceid=&lat=&lon=&timestamp=&speed=&altitude=&hdop=&bearing=
Protocol B (Overland): {"locations": [GeoJSON Feature, ...]}, device_id per feature
Protocol C (Traccar):  deviceid|id, lat, lon, timestamp, speed, bearing|heading, accuracy
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from crewmap.app.core.clock import as_utc
from crewmap.app.core.exceptions import InvalidPayloadError
from crewmap.app.models.enums import Protocol
from crewmap.app.schemas.location import RawFix

MISSING_FIELDS_HINT = {
    Protocol.OSMAND: "Required query parameters: id (or deviceid), lat, lon",
    Protocol.OVERLAND: "Each location needs geometry.coordinates [lon, lat] and properties.device_id",
    Protocol.TRACCAR: "Required fields: lat, lon, and either deviceid or id",
}

OVERLAND_SHAPE_HINT = "Expected { locations: [...] }"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _first_present(params: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key that is present and non-blank."""
    for key in keys:
        value = params.get(key)
        if not _is_blank(value):
            return value
    return None


def parse_optional_float(value: Any) -> Optional[float]:
    """Parse a number, returning None for blanks, garbage and non-finite values."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _non_negative(value: Optional[float]) -> Optional[float]:
    if value is None or value < 0:
        return None
    return value


def _parse_coordinate(value: Any, name: str, protocol: Protocol) -> float:
    number = parse_optional_float(value)
    if number is None:
        raise InvalidPayloadError(
            f"Invalid coordinates: {name} must be a finite number",
            hint=MISSING_FIELDS_HINT[protocol],
        )
    return number


def parse_timestamp(value: Any, received_at: datetime) -> datetime:
    """
    Parse a device timestamp.

    Accepts epoch seconds (int, float or numeric string) and ISO-8601
    strings. Missing means `received_at`; anything else is invalid.
    """
    if _is_blank(value):
        return as_utc(received_at)

    if isinstance(value, datetime):
        return as_utc(value)

    epoch = parse_optional_float(value)
    if epoch is not None:
        try:
            return datetime.fromtimestamp(epoch, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise InvalidPayloadError(f"Timestamp out of range: {value}")

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return as_utc(datetime.fromisoformat(text))
        except ValueError:
            pass

    raise InvalidPayloadError(
        f"Invalid timestamp: {value}",
        hint="Use epoch seconds or an ISO-8601 timestamp",
    )


def _build_fix(
    protocol: Protocol,
    token: Any,
    latitude: Any,
    longitude: Any,
    timestamp: datetime,
    speed: Any = None,
    heading: Any = None,
    accuracy: Any = None,
    altitude: Any = None,
) -> RawFix:
    """Shared validation for every protocol."""
    if _is_blank(token) or _is_blank(latitude) or _is_blank(longitude):
        raise InvalidPayloadError(
            "Missing required parameters: id, lat, lon",
            hint=MISSING_FIELDS_HINT[protocol],
        )

    return RawFix(
        protocol=protocol,
        driver_token=str(token).strip(),
        latitude=_parse_coordinate(latitude, "lat", protocol),
        longitude=_parse_coordinate(longitude, "lon", protocol),
        timestamp=timestamp,
        speed=_non_negative(parse_optional_float(speed)),
        heading=parse_optional_float(heading),
        accuracy=_non_negative(parse_optional_float(accuracy)),
        altitude=parse_optional_float(altitude),
    )


def parse_osmand(params: Mapping[str, Any], received_at: datetime) -> RawFix:
    """
    Protocol A: single fix in the query string.

    `id` is preferred over `deviceid`; `hdop` becomes accuracy and
    `bearing` becomes heading.
    """
    return _build_fix(
        Protocol.OSMAND,
        token=_first_present(params, "id", "deviceid"),
        latitude=params.get("lat"),
        longitude=params.get("lon"),
        timestamp=parse_timestamp(params.get("timestamp"), received_at),
        speed=params.get("speed"),
        heading=params.get("bearing"),
        accuracy=params.get("hdop"),
        altitude=params.get("altitude"),
    )


def parse_traccar(params: Mapping[str, Any], received_at: datetime) -> RawFix:
    """
    Protocol C: single fix via query string or form body.

    `deviceid` is preferred over `id`; direction comes from `bearing`,
    falling back to `heading`.
    """
    return _build_fix(
        Protocol.TRACCAR,
        token=_first_present(params, "deviceid", "id"),
        latitude=params.get("lat"),
        longitude=params.get("lon"),
        timestamp=parse_timestamp(params.get("timestamp"), received_at),
        speed=params.get("speed"),
        heading=_first_present(params, "bearing", "heading"),
        accuracy=params.get("accuracy"),
        altitude=params.get("altitude"),
    )


def parse_overland_payload(body: Any) -> List[Any]:
    """
    Protocol B envelope. Returns the raw location list.

    Only the envelope shape is checked here; items are parsed one by one
    so a bad item cannot sink the batch.
    """
    if not isinstance(body, dict) or not isinstance(body.get("locations"), list):
        raise InvalidPayloadError("Invalid payload format", hint=OVERLAND_SHAPE_HINT)
    return body["locations"]


def parse_overland_location(feature: Any, received_at: datetime) -> RawFix:
    """
    Protocol B: one GeoJSON Feature.

    geometry.coordinates is [lon, lat]. Overland reports no heading.
    """
    if not isinstance(feature, dict):
        raise InvalidPayloadError("Location must be a GeoJSON Feature object")

    geometry = feature.get("geometry")
    coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
        raise InvalidPayloadError(
            "Missing geometry.coordinates",
            hint=MISSING_FIELDS_HINT[Protocol.OVERLAND],
        )

    properties: Dict[str, Any] = feature.get("properties") or {}
    if not isinstance(properties, dict):
        raise InvalidPayloadError("properties must be an object")

    longitude, latitude = coordinates[0], coordinates[1]
    return _build_fix(
        Protocol.OVERLAND,
        token=properties.get("device_id"),
        latitude=latitude,
        longitude=longitude,
        timestamp=parse_timestamp(properties.get("timestamp"), received_at),
        speed=properties.get("speed"),
        accuracy=properties.get("horizontal_accuracy"),
        altitude=properties.get("altitude"),
    )
