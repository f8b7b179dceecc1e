"""Recover structured facts from free-text chat messages.

Everything here is pure and deterministic. A failed extraction returns a
sentinel (`None` or `UNKNOWN_LOCATION`) and never raises.
"""

from __future__ import annotations

import math
import re
from typing import List, Optional, Tuple

from pydantic import BaseModel

from dispatch_agent.agent.state import PendingDelivery
from dispatch_agent.models import LngLat


UNKNOWN_LOCATION = "Unknown Location"

# Euclidean distance in degrees, roughly a city block.
COORDINATE_TOLERANCE_DEGREES = 0.002
_FLOAT_SLACK = 1e-9

KNOWN_LOCATIONS: Tuple[Tuple[str, float, float], ...] = (
    ("Western General Hospital", -3.2351, 55.9623),
    ("Royal Infirmary of Edinburgh", -3.1365, 55.9215),
    ("St John's Hospital", -3.5103, 55.9297),
    ("Royal Edinburgh Hospital", -3.2087, 55.9235),
    ("Sick Kids Hospital", -3.1839, 55.9389),
)

_NUM = r"-?\d+(?:\.\d+)?"
_DECIMAL = r"-?\d+\.\d+"
_COORD_PAIR = re.compile(rf"({_DECIMAL})\s*,\s*({_DECIMAL})")
_LABELLED_COORDS = re.compile(rf"coordinates?[:\s]+({_NUM})\s*,\s*({_NUM})", re.I)

_REQUEST_TRIGGER = re.compile(r"schedule|deliver|need.*delivery|send.*package|dispatch", re.I)
_WEIGHT = re.compile(r"(\d+(?:\.\d+)?)\s*kg\b", re.I)
_LOCATION_PHRASE = re.compile(
    r"\b(?:deliver(?:y)? to|to)\s+([A-Z][^,\n]+?)(?:\s+at\s+\d{1,2}:\d{2}|,\s*coordinates|\s+on\s+\d{4})",
    re.I,
)
_DATE = re.compile(r"(?:date|on|for).*?(\d{4}-\d{2}-\d{2})", re.I)
_TIME = re.compile(r"(?:at|time).*?\b(\d{1,2}:\d{2})\b", re.I)
_COOLING = re.compile(r"cooling|refrigerat|\bcold\b|chilled", re.I)
_HEATING = re.compile(r"heating|\bwarm|\bhot\b", re.I)

_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
# Tolerates markdown bold around the label, e.g. "**Total Cost:** £12.50".
_COST = re.compile(rf"(?:Total\s+Cost|Cost)\**\s*[:\-]?\**\s*[£$€]?\s*{_AMOUNT}", re.I)
_DRONES_USED = re.compile(r"Drones?\s+Used\**[:\s]+\**\s*(#?\d+(?:\s*(?:,|and|&)\s*#?\d+)*)", re.I)
_SINGLE_DRONE = re.compile(r"Drone\**:?\**\s+(?:Drone\s+)?#?(\d+)", re.I)

_ACKS = (
    "yes", "confirm", "confirmed", "ok", "okay", "proceed", "go ahead", "do it",
    "sounds good", "perfect", "great", "looks good",
)
_CONFIRMATION = re.compile(
    r"^(?:%s)(?:,?\s+(?:please|thanks|thank you))?[.!]?$" % "|".join(re.escape(a) for a in _ACKS)
)


class CostInfo(BaseModel):
    cost: float
    drones: Optional[List[str]] = None


def degree_distance(lng_a: float, lat_a: float, lng_b: float, lat_b: float) -> float:
    return math.hypot(lng_a - lng_b, lat_a - lat_b)


def nearest_location(lng: float, lat: float) -> Optional[str]:
    """Name of the closest known location within tolerance, else None."""
    best_name, best_dist = None, None
    for name, k_lng, k_lat in KNOWN_LOCATIONS:
        dist = degree_distance(lng, lat, k_lng, k_lat)
        if best_dist is None or dist < best_dist:
            best_name, best_dist = name, dist
    if best_dist is not None and best_dist <= COORDINATE_TOLERANCE_DEGREES + _FLOAT_SLACK:
        return best_name
    return None


def _valid_pair(lng: float, lat: float) -> bool:
    return -180 <= lng <= 180 and -90 <= lat <= 90


def extract_location(text: str) -> str:
    """Map the first `lng, lat` pair in `text` to a known location name."""
    match = _COORD_PAIR.search(text or "")
    if not match:
        return UNKNOWN_LOCATION
    lng, lat = float(match.group(1)), float(match.group(2))
    if not _valid_pair(lng, lat):
        return UNKNOWN_LOCATION
    return nearest_location(lng, lat) or UNKNOWN_LOCATION


def parse_delivery_request(text: str) -> Optional[PendingDelivery]:
    """Coarse fields of a delivery request, or None if the text is not one.

    Each field is extracted independently; anything not mentioned is None.
    """
    if not text or not _REQUEST_TRIGGER.search(text):
        return None

    fields = {}
    m = _WEIGHT.search(text)
    if m:
        fields["weight"] = float(m.group(1))
    m = _LOCATION_PHRASE.search(text)
    if m:
        fields["location"] = m.group(1).strip()
    m = _DATE.search(text)
    if m:
        fields["date"] = m.group(1)
    m = _TIME.search(text)
    if m:
        hh, mm = m.group(1).split(":")
        fields["time"] = f"{int(hh):02d}:{mm}"
    m = _LABELLED_COORDS.search(text)
    if m:
        lng, lat = float(m.group(1)), float(m.group(2))
        if _valid_pair(lng, lat):
            fields["coordinates"] = LngLat(lng=lng, lat=lat)
    if _COOLING.search(text):
        fields["cooling"] = True
    if _HEATING.search(text):
        fields["heating"] = True
    return PendingDelivery(**fields)


def _amount(raw: str) -> float:
    return float(raw.replace(",", ""))


def parse_cost(message: str) -> Optional[CostInfo]:
    """Cost (and drone ids when stated) from an assistant message.

    No cost token means None; the drones are optional on top of a cost.
    """
    cost_match = _COST.search(message or "")
    if not cost_match:
        return None
    cost = _amount(cost_match.group(1))

    multi = _DRONES_USED.search(message)
    if multi:
        return CostInfo(cost=cost, drones=re.findall(r"\d+", multi.group(1)))
    single = _SINGLE_DRONE.search(message)
    if single:
        return CostInfo(cost=cost, drones=[single.group(1)])
    return CostInfo(cost=cost)


def is_confirmation(text: str) -> bool:
    return bool(_CONFIRMATION.match((text or "").strip().lower()))


__all__ = [
    "UNKNOWN_LOCATION",
    "COORDINATE_TOLERANCE_DEGREES",
    "KNOWN_LOCATIONS",
    "CostInfo",
    "degree_distance",
    "nearest_location",
    "extract_location",
    "parse_delivery_request",
    "parse_cost",
    "is_confirmation",
]
