"""
Constraint checkers for unassigned-job diagnostics.
Each checker answers whether a job fits one vehicle route at one insertion
position along a single dimension (skills, time windows, capacity, ...).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from functools import cached_property, lru_cache
from typing import Tuple

from shapely.geometry import Point, Polygon

from .models import Evidence, Job, Problem, ReasonCode, RelationType, Vehicle
from .schedule import RouteState, Schedule, break_overrun, simulate_insertion


logger = logging.getLogger(__name__)


def added_overrun(after: float, before: float) -> float:
    """How much an insertion pushes a route past a limit it may already exceed."""
    if not math.isfinite(before):
        before = 0.0
    return max(after, 0.0) - max(before, 0.0)


class CheckScope(str, Enum):
    """Whether a checker depends on the insertion position."""
    ROUTE = "route"        # evaluated once per vehicle
    ACTIVITY = "activity"  # evaluated per insertion position


@dataclass
class InsertionContext:
    """One insertion attempt: job into the route of a vehicle at a position."""
    job: Job
    state: RouteState
    position: int
    problem: Problem

    @property
    def vehicle(self) -> Vehicle:
        return self.state.vehicle

    @cached_property
    def schedule(self) -> Schedule:
        """Route timing with the job inserted, shared by all timing checkers."""
        return simulate_insertion(self.state, self.job, self.position)


class ConstraintChecker:
    """Base class: one checker per constraint dimension."""

    code: ReasonCode
    scope: CheckScope = CheckScope.ACTIVITY

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value})"


class SkillChecker(ConstraintChecker):
    """Job's required skills must be a subset of the vehicle's skills."""

    code = ReasonCode.SKILL_CONSTRAINT
    scope = CheckScope.ROUTE

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        missing = ctx.job.skills - ctx.vehicle.skills
        if missing:
            return Evidence.violated()
        return Evidence.ok()


class TimeWindowChecker(ConstraintChecker):
    """Job and every later stop must be reached before their windows close.

    A job whose window opens only after the vehicle's shift has ended cannot
    be served inside the shift either, so that counts as a window miss too.
    Stops already late in the route as it is only count for the extra delay.
    """

    code = ReasonCode.TIME_WINDOW_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        schedule = ctx.schedule
        if not schedule.reachable:
            return Evidence.ok()  # reachability owns this case
        base_late = ctx.state.base_lateness
        inserted = schedule.stops[ctx.position]
        late = inserted.late
        if ctx.job.time_windows:
            late = max(late, inserted.start - ctx.vehicle.shift.end)
        for stop in schedule.stops[ctx.position + 1:]:
            late = max(late, stop.late - base_late.get(stop.job.id, 0.0))
        if late > 0:
            return Evidence.violated(late)
        return Evidence.ok()


class CapacityChecker(ConstraintChecker):
    """Load must stay within every capacity dimension along the whole route."""

    code = ReasonCode.CAPACITY_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        peak = ctx.state.peak_load_with(ctx.job, ctx.position)
        capacity = ctx.state.capacity(len(peak))
        overflow = max((load - cap for load, cap in zip(peak, capacity)), default=0.0)
        if overflow > 0:
            return Evidence.violated(overflow)
        return Evidence.ok()


class ReachableChecker(ConstraintChecker):
    """Both legs around the inserted job must exist in the routing matrix."""

    code = ReasonCode.REACHABLE_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        state, position = ctx.state, ctx.position
        matrix = state.matrix
        prev_location = state.jobs[position - 1].location if position > 0 else state.origin.location
        if position < state.size:
            next_location = state.jobs[position].location
        else:
            next_location = ctx.vehicle.end_location  # None for open routes

        location = ctx.job.location
        if not matrix.is_reachable(prev_location, location):
            return Evidence.violated()
        if next_location is not None and not matrix.is_reachable(location, next_location):
            return Evidence.violated()
        return Evidence.ok()


class MaxDistanceChecker(ConstraintChecker):
    """Route distance after insertion must not exceed the vehicle limit."""

    code = ReasonCode.MAX_DISTANCE_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        limit = ctx.vehicle.max_distance
        if limit is None or not ctx.schedule.reachable:
            return Evidence.ok()
        excess = added_overrun(ctx.schedule.distance - limit, ctx.state.base.distance - limit)
        if excess > 0:
            return Evidence.violated(excess)
        return Evidence.ok()


class ShiftTimeChecker(ConstraintChecker):
    """Route must end inside the shift and respect the max tour duration."""

    code = ReasonCode.SHIFT_TIME_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        schedule = ctx.schedule
        if not schedule.reachable:
            return Evidence.ok()
        vehicle, base = ctx.vehicle, ctx.state.base
        excess = added_overrun(schedule.end_time - vehicle.shift.end, base.end_time - vehicle.shift.end)
        if vehicle.max_duration is not None:
            excess = max(excess, added_overrun(
                schedule.duration - vehicle.max_duration, base.duration - vehicle.max_duration
            ))
        if excess > 0:
            return Evidence.violated(excess)
        return Evidence.ok()


class BreakChecker(ConstraintChecker):
    """Vehicle breaks schedulable before insertion must stay schedulable."""

    code = ReasonCode.BREAK_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        vehicle = ctx.vehicle
        if not vehicle.breaks or not ctx.schedule.reachable:
            return Evidence.ok()
        worst = 0.0
        for brk, before in zip(vehicle.breaks, ctx.state.base_break_overruns):
            if before > 0:
                continue  # already unschedulable, not caused by this job
            worst = max(worst, break_overrun(ctx.schedule, vehicle, brk))
        if worst > 0:
            return Evidence.violated(worst)
        return Evidence.ok()


class LockingChecker(ConstraintChecker):
    """Relations lock jobs to a vehicle and, for sequences, to an order."""

    code = ReasonCode.LOCKING_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        job, vehicle, state, position = ctx.job, ctx.vehicle, ctx.state, ctx.position
        placed = state.job_positions

        for relation in ctx.problem.relations_for(job.id):
            if relation.vehicle_id != vehicle.id:
                return Evidence.violated()
            if relation.type == RelationType.ANY:
                continue
            idx = relation.jobs.index(job.id)
            for other in relation.jobs[:idx]:
                if other in placed and placed[other] >= position:
                    return Evidence.violated()
            for other in relation.jobs[idx + 1:]:
                if other in placed and placed[other] < position:
                    return Evidence.violated()
            if relation.type == RelationType.STRICT:
                prev_member = relation.jobs[idx - 1] if idx > 0 else None
                next_member = relation.jobs[idx + 1] if idx + 1 < len(relation.jobs) else None
                if prev_member in placed and placed[prev_member] != position - 1:
                    return Evidence.violated()
                if next_member in placed and placed[next_member] != position:
                    return Evidence.violated()

        # a foreign job must not split two adjacent members of a strict relation
        if 0 < position < state.size:
            left, right = state.jobs[position - 1].id, state.jobs[position].id
            for relation in ctx.problem.relations_by_vehicle.get(vehicle.id, []):
                if relation.type != RelationType.STRICT or job.id in relation.jobs:
                    continue
                if left in relation.jobs and right in relation.jobs:
                    if relation.jobs.index(right) == relation.jobs.index(left) + 1:
                        return Evidence.violated()
        return Evidence.ok()


class PriorityChecker(ConstraintChecker):
    """Jobs with a lower order value must be served before higher ones."""

    code = ReasonCode.PRIORITY_CONSTRAINT

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        order = ctx.job.order
        if order is None:
            return Evidence.ok()
        jobs, position = ctx.state.jobs, ctx.position
        inversions = sum(1 for other in jobs[:position] if other.order is not None and other.order > order)
        inversions += sum(1 for other in jobs[position:] if other.order is not None and other.order < order)
        if inversions:
            return Evidence.violated(float(inversions))
        return Evidence.ok()


class AreaChecker(ConstraintChecker):
    """Job must lie within one of the vehicle's allowed areas."""

    code = ReasonCode.AREA_CONSTRAINT
    scope = CheckScope.ROUTE

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        areas = ctx.vehicle.allowed_areas
        if not areas:
            return Evidence.ok()
        job = ctx.job
        if job.area_ids:
            if job.area_ids & {area.id for area in areas}:
                return Evidence.ok()
            return Evidence.violated()
        if job.coordinates is None:
            logger.debug(f"Job {job.id} has no area ids or coordinates - area not evaluable")
            return Evidence.ok()
        point = Point(job.coordinates.lon, job.coordinates.lat)
        if any(_polygon(tuple(area.shape)).covers(point) for area in areas):
            return Evidence.ok()
        return Evidence.violated()


class DispatchChecker(ConstraintChecker):
    """Vehicle dispatch must fit its shift and leave time to reach the job."""

    code = ReasonCode.DISPATCH_CONSTRAINT
    scope = CheckScope.ROUTE

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        vehicle = ctx.vehicle
        dispatch = vehicle.dispatch
        if dispatch is None:
            return Evidence.ok()

        window, shift = dispatch.time_window, vehicle.shift
        if window.start > shift.end:
            return Evidence.violated(window.start - shift.end)
        if window.end < shift.start:
            return Evidence.violated(shift.start - window.end)

        origin = ctx.state.origin
        if not math.isfinite(origin.time):
            return Evidence.violated()  # no path to the dispatch location
        ready_from = origin.time - dispatch.duration  # when dispatch actually begins
        if ready_from > window.end:
            return Evidence.violated(ready_from - window.end)

        job = ctx.job
        if job.time_windows:
            travel = ctx.state.matrix.get_duration(origin.location, job.location)
            if not math.isfinite(travel):
                return Evidence.ok()  # reachability owns this case
            latest_end = max(tw.end for tw in job.time_windows)
            shortfall = origin.time + travel - latest_end
            if shortfall > 0:
                return Evidence.violated(shortfall)
        return Evidence.ok()


class TourSizeChecker(ConstraintChecker):
    """Job count after insertion must not exceed the vehicle's tour size."""

    code = ReasonCode.TOUR_SIZE_CONSTRAINT
    scope = CheckScope.ROUTE

    def evaluate(self, ctx: InsertionContext) -> Evidence:
        limit = ctx.vehicle.max_tour_size
        if limit is None:
            return Evidence.ok()
        excess = ctx.state.size + 1 - limit
        if excess > 0:
            return Evidence.violated(float(excess))
        return Evidence.ok()


@lru_cache(maxsize=256)
def _polygon(shape: Tuple[Tuple[float, float], ...]) -> Polygon:
    return Polygon([(lon, lat) for lat, lon in shape])
