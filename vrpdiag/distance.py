"""
Transport matrices used by the diagnostics pass.
Durations are minutes, distances are meters; matrix computation happens upstream.
"""

import math
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class Coordinates:
    """Geographic coordinates."""
    lat: float
    lon: float


@dataclass
class RouteMatrix:
    """Distance and duration matrix between locations.

    A missing (None), negative or infinite entry means there is no path
    between the two locations.
    """
    durations_minutes: List[List[Optional[float]]]  # [origin_idx][dest_idx] = minutes
    distances_meters: List[List[Optional[float]]]   # [origin_idx][dest_idx] = meters

    def __post_init__(self):
        if len(self.durations_minutes) != len(self.distances_meters):
            raise ValueError(
                f"Matrix size mismatch: {len(self.durations_minutes)} duration rows, "
                f"{len(self.distances_meters)} distance rows"
            )
        size = len(self.durations_minutes)
        for row in list(self.durations_minutes) + list(self.distances_meters):
            if len(row) != size:
                raise ValueError(f"Matrix must be square, got row of {len(row)} for size {size}")

    @property
    def size(self) -> int:
        return len(self.durations_minutes)

    def get_duration(self, origin_idx: int, dest_idx: int) -> float:
        """Get duration in minutes between two points (inf when unreachable)."""
        return _finite_or_inf(self.durations_minutes[origin_idx][dest_idx])

    def get_distance(self, origin_idx: int, dest_idx: int) -> float:
        """Get distance in meters between two points (inf when unreachable)."""
        return _finite_or_inf(self.distances_meters[origin_idx][dest_idx])

    def is_reachable(self, origin_idx: int, dest_idx: int) -> bool:
        """Check that both duration and distance between the points are known."""
        if not (0 <= origin_idx < self.size and 0 <= dest_idx < self.size):
            return False
        return (
            math.isfinite(self.get_duration(origin_idx, dest_idx))
            and math.isfinite(self.get_distance(origin_idx, dest_idx))
        )


def _finite_or_inf(value: Optional[float]) -> float:
    if value is None or value < 0 or math.isnan(value):
        return math.inf
    return float(value)
