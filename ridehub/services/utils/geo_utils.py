import math
from typing import Iterable, Optional, Protocol

from ridehub.common.constants import EARTH_RADIUS_KM


class _HasSpeed(Protocol):
    speed: Optional[float]


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points, km (haversine formula).
    """
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlng / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def average_speed(points: Iterable[_HasSpeed]) -> float:
    """
    Mean of the reported speeds. Points without a speed, or with speed <= 0,
    are ignored; 0.0 when no point qualifies.
    """
    speeds = [p.speed for p in points if p.speed is not None and p.speed > 0]
    if not speeds:
        return 0.0
    return sum(speeds) / len(speeds)


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero (round() in Python rounds half to even)."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)
