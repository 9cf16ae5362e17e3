"""Check reported routes against their vehicle limits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..models import Problem, Route, Solution, Vehicle
from ..schedule import RouteState


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimitViolation:
    vehicle_id: str
    limit: str      # "max distance", "shift time" or "tour size"
    expected: float
    actual: float

    @property
    def message(self) -> str:
        return (
            f"{self.limit} limit violation, expected: not more than {_fmt(self.expected)}, "
            f"got: {_fmt(self.actual)}, vehicle id '{self.vehicle_id}'"
        )

    def __str__(self) -> str:
        return self.message


def check_limits(problem: Problem, solution: Solution) -> List[LimitViolation]:
    """Return every max distance, shift time and tour size limit a route exceeds.

    Reported route totals are used when present; otherwise they are
    recomputed from the transport matrix. A total equal to the limit is fine.
    """
    violations: List[LimitViolation] = []
    for route in solution.routes:
        vehicle = problem.get_vehicle(route.vehicle_id)
        distance, duration = _route_totals(problem, vehicle, route)

        if vehicle.max_distance is not None and distance > vehicle.max_distance:
            violations.append(LimitViolation(vehicle.id, "max distance", vehicle.max_distance, distance))
        if vehicle.max_duration is not None and duration > vehicle.max_duration:
            violations.append(LimitViolation(vehicle.id, "shift time", vehicle.max_duration, duration))
        if vehicle.max_tour_size is not None and len(route.stops) > vehicle.max_tour_size:
            violations.append(LimitViolation(vehicle.id, "tour size", vehicle.max_tour_size, len(route.stops)))

    for violation in violations:
        logger.warning(violation.message)
    return violations


def _route_totals(problem: Problem, vehicle: Vehicle, route: Route):
    distance: Optional[float] = route.distance
    duration: Optional[float] = route.duration
    if distance is None or duration is None:
        jobs = [problem.get_job(stop.job_id) for stop in route.stops]
        base = RouteState.build(vehicle, problem.matrix_for(vehicle), jobs, route.start_time).base
        distance = base.distance if distance is None else distance
        duration = base.duration if duration is None else duration
    return distance, duration


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"
