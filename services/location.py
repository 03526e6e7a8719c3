"""Parsing of ``"<latitude>,<longitude>"`` location strings."""

from __future__ import annotations

import math
import re

from models.records import Coordinates, UsageInterval
from services.errors import ValidationError

LOCATION_FIELD = "location"
_LOCATION_PATTERN = re.compile(r"[0-9]{1,3}\.[0-9]+,-?[0-9]{1,3}\.[0-9]+")


def parse_location(interval: UsageInterval, index: int = 0) -> Coordinates:
    raw = interval.location
    if raw is None:
        raise ValidationError("is required", index=index, field=LOCATION_FIELD)
    if not isinstance(raw, str) or not _LOCATION_PATTERN.fullmatch(raw):
        raise ValidationError(
            "should be a comma separated string of 'latitude' and 'longitude'",
            index=index,
            field=LOCATION_FIELD,
        )

    latitude_raw, longitude_raw = raw.split(",")
    try:
        latitude = float(latitude_raw)
        longitude = float(longitude_raw)
    except ValueError as exc:
        raise ValidationError(
            "'latitude' or 'longitude' is not a number",
            index=index,
            field=LOCATION_FIELD,
        ) from exc
    if math.isnan(latitude) or math.isnan(longitude):
        raise ValidationError(
            "'latitude' or 'longitude' is not a number",
            index=index,
            field=LOCATION_FIELD,
        )
    return Coordinates(latitude=latitude, longitude=longitude)

