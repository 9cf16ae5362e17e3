"""
Route timing and load bookkeeping for insertion checks.
Recomputes a vehicle's schedule with one extra job inserted, reusing the
unchanged prefix of the existing route.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, List, Optional, Tuple

from .distance import RouteMatrix
from .models import Break, Job, JobKind, Vehicle


@dataclass
class ScheduledStop:
    """Timing of one job within a route."""
    job: Job
    arrival: float
    start: float      # service start after waiting for the window
    departure: float
    late: float       # minutes past the latest usable window end
    distance: float   # cumulative meters at arrival


@dataclass
class Schedule:
    """Full timing of a route."""
    stops: List[ScheduledStop]
    start_time: float
    end_time: float
    distance: float
    reachable: bool = True

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def max_late(self) -> float:
        return max((s.late for s in self.stops), default=0.0)


@dataclass(frozen=True)
class RouteOrigin:
    """Where and when the vehicle starts serving jobs."""
    location: int
    time: float
    distance: float


def service_start(job: Job, arrival: float) -> Tuple[float, float]:
    """Return (service start, lateness) for an arrival at the job."""
    if not job.time_windows:
        return arrival, 0.0
    windows = sorted(job.time_windows, key=lambda tw: tw.start)
    for tw in windows:
        if arrival <= tw.end:
            return max(arrival, tw.start), 0.0  # wait if early
    latest_end = max(tw.end for tw in windows)
    return arrival, arrival - latest_end


def route_origin(vehicle: Vehicle, matrix: RouteMatrix, start_time: Optional[float] = None) -> RouteOrigin:
    """Departure point of the route, after dispatch when the vehicle has one."""
    dispatch = vehicle.dispatch
    if dispatch is None:
        departure = vehicle.shift.start if start_time is None else start_time
        return RouteOrigin(vehicle.start_location, departure, 0.0)

    location = vehicle.start_location if dispatch.location is None else dispatch.location
    travel = matrix.get_duration(vehicle.start_location, location) if location != vehicle.start_location else 0.0
    distance = matrix.get_distance(vehicle.start_location, location) if location != vehicle.start_location else 0.0
    ready = max(vehicle.shift.start + travel, dispatch.time_window.start) + dispatch.duration
    if start_time is not None:
        ready = max(ready, start_time)
    return RouteOrigin(location, ready, distance)


def walk_route(
    vehicle: Vehicle,
    matrix: RouteMatrix,
    jobs: List[Job],
    location: int,
    time: float,
    distance: float,
    start_time: float,
    prefix: Optional[List[ScheduledStop]] = None,
) -> Schedule:
    """Simulate driving through jobs from (location, time, distance) to the route end."""
    stops = list(prefix or [])
    if not math.isfinite(time):
        return Schedule(stops, start_time, math.inf, math.inf, reachable=False)  # origin has no path
    for job in jobs:
        travel = matrix.get_duration(location, job.location)
        if not math.isfinite(travel):
            return Schedule(stops, start_time, math.inf, math.inf, reachable=False)
        distance += matrix.get_distance(location, job.location)
        arrival = time + travel
        start, late = service_start(job, arrival)
        time = start + job.duration
        stops.append(ScheduledStop(job, arrival, start, time, late, distance))
        location = job.location

    end_time = time
    if vehicle.end_location is not None:
        travel = matrix.get_duration(location, vehicle.end_location)
        if not math.isfinite(travel):
            return Schedule(stops, start_time, math.inf, math.inf, reachable=False)
        end_time = time + travel
        distance += matrix.get_distance(location, vehicle.end_location)
    return Schedule(stops, start_time, end_time, distance)


@dataclass
class RouteState:
    """Read-only view of one vehicle's current route, shared across jobs."""
    vehicle: Vehicle
    matrix: RouteMatrix
    jobs: List[Job]
    origin: RouteOrigin
    base: Schedule = field(init=False)
    dims: int = field(init=False)
    loads: List[List[float]] = field(init=False)        # loads[k] = load before stop k, loads[n] = at end
    prefix_peak: List[List[float]] = field(init=False)  # max of loads[0..k]
    suffix_peak: List[List[float]] = field(init=False)  # max of loads[k..n]

    def __post_init__(self):
        self.base = walk_route(
            self.vehicle, self.matrix, self.jobs,
            self.origin.location, self.origin.time, self.origin.distance, self.origin.time,
        )
        self.dims = max([len(self.vehicle.capacity)] + [len(job.demand) for job in self.jobs])
        self._build_load_profile()

    @classmethod
    def build(
        cls, vehicle: Vehicle, matrix: RouteMatrix, jobs: List[Job], start_time: Optional[float] = None
    ) -> "RouteState":
        return cls(vehicle=vehicle, matrix=matrix, jobs=list(jobs), origin=route_origin(vehicle, matrix, start_time))

    @property
    def size(self) -> int:
        return len(self.jobs)

    @property
    def job_ids(self) -> List[str]:
        return [job.id for job in self.jobs]

    @cached_property
    def job_positions(self) -> Dict[str, int]:
        return {job.id: k for k, job in enumerate(self.jobs)}

    @cached_property
    def base_lateness(self) -> Dict[str, float]:
        """Lateness per job id in the route as it is."""
        return {stop.job.id: stop.late for stop in self.base.stops}

    @cached_property
    def base_break_overruns(self) -> List[float]:
        """Break overruns of the route as it is, before any insertion."""
        return [break_overrun(self.base, self.vehicle, brk) for brk in self.vehicle.breaks]

    def positions(self) -> range:
        """Insertion positions: before each stop, plus after the last one."""
        return range(len(self.jobs) + 1)

    def capacity(self, dims: int) -> List[float]:
        cap = list(self.vehicle.capacity)
        return cap + [0.0] * (dims - len(cap))

    def _build_load_profile(self) -> None:
        dims = self.dims
        current = [0.0] * dims
        for job in self.jobs:
            if job.kind == JobKind.DELIVERY:
                for d, amount in enumerate(job.demand):
                    current[d] += amount
        loads = [list(current)]
        for job in self.jobs:
            sign = -1.0 if job.kind == JobKind.DELIVERY else 1.0
            for d, amount in enumerate(job.demand):
                current[d] += sign * amount
            loads.append(list(current))
        self.loads = loads

        prefix = []
        peak = [-math.inf] * dims
        for load in loads:
            peak = [max(p, l) for p, l in zip(peak, load)]
            prefix.append(peak)
        suffix = [None] * len(loads)
        peak = [-math.inf] * dims
        for k in range(len(loads) - 1, -1, -1):
            peak = [max(p, l) for p, l in zip(peak, loads[k])]
            suffix[k] = peak
        self.prefix_peak = prefix
        self.suffix_peak = suffix

    def peak_load_with(self, job: Job, position: int) -> List[float]:
        """Highest load per dimension along the route with job inserted at position."""
        dims = max(self.dims, len(job.demand))
        demand = list(job.demand) + [0.0] * (dims - len(job.demand))

        def pad(values: List[float]) -> List[float]:
            return list(values) + [0.0] * (dims - len(values))

        before = pad(self.prefix_peak[position])
        after = pad(self.suffix_peak[position])
        if job.kind == JobKind.DELIVERY:
            return [max(b + q, a) for b, a, q in zip(before, after, demand)]
        return [max(b, a + q) for b, a, q in zip(before, after, demand)]


def simulate_insertion(state: RouteState, job: Job, position: int) -> Schedule:
    """Schedule of the route with job inserted before stop `position`."""
    if not 0 <= position <= state.size:
        raise IndexError(f"Insertion position {position} outside route of {state.size} stops")

    base = state.base
    if not base.reachable:
        jobs = state.jobs[:position] + [job] + state.jobs[position:]
        return walk_route(
            state.vehicle, state.matrix, jobs,
            state.origin.location, state.origin.time, state.origin.distance, state.origin.time,
        )

    prefix = base.stops[:position]
    if prefix:
        last = prefix[-1]
        location, time, distance = last.job.location, last.departure, last.distance
    else:
        location, time, distance = state.origin.location, state.origin.time, state.origin.distance
    return walk_route(
        state.vehicle, state.matrix, [job] + state.jobs[position:],
        location, time, distance, state.origin.time, prefix=prefix,
    )


def break_overrun(schedule: Schedule, vehicle: Vehicle, brk: Break) -> float:
    """Minutes by which the best placement of a break misses its limits (0 = schedulable).

    A break is taken at the route start, after any break-eligible stop, or at
    the route end. Waiting for the break window and the break itself delay the
    rest of the route; the delay must keep later stops inside their windows and
    the route end inside the shift.
    """
    window = brk.time_window
    if not schedule.reachable or schedule.end_time < window.start:
        return 0.0  # route is over before the break is due

    gaps = [(schedule.start_time, 0)]
    for k, stop in enumerate(schedule.stops):
        if stop.job.break_eligible:
            gaps.append((stop.departure, k + 1))

    best = math.inf
    for gap_time, next_index in gaps:
        best = min(best, _overrun_at(schedule, vehicle, brk, gap_time, next_index))
        if best == 0.0:
            return 0.0

    # taking the break after arriving at the end location
    begin = max(schedule.end_time, window.start)
    overrun = max(0.0, begin - window.end)
    overrun = max(overrun, _shift_excess(vehicle, begin + brk.duration) - _shift_excess(vehicle, schedule.end_time))
    return min(best, overrun)


def _overrun_at(schedule: Schedule, vehicle: Vehicle, brk: Break, gap_time: float, next_index: int) -> float:
    window = brk.time_window
    begin = max(gap_time, window.start)
    if begin > window.end:
        return begin - window.end

    delay = begin + brk.duration - gap_time
    worst = 0.0
    for stop in schedule.stops[next_index:]:
        if delay <= 0:
            break
        start, late = service_start(stop.job, stop.arrival + delay)
        worst = max(worst, late - stop.late)
        delay = start - stop.start  # waiting absorbs part of the delay
    if delay > 0:
        end = schedule.end_time + delay
        worst = max(worst, _shift_excess(vehicle, end) - _shift_excess(vehicle, schedule.end_time))
    return max(worst, 0.0)


def _shift_excess(vehicle: Vehicle, end_time: float) -> float:
    return max(0.0, end_time - vehicle.shift.end)
