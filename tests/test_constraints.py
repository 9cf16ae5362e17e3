"""
Tests for the individual constraint checkers.
"""

import pytest

from vrpdiag.constraints import (
    AreaChecker, BreakChecker, CapacityChecker, DispatchChecker, LockingChecker,
    MaxDistanceChecker, PriorityChecker, ReachableChecker, ShiftTimeChecker,
    SkillChecker, TimeWindowChecker, TourSizeChecker,
)
from vrpdiag.distance import RouteMatrix
from vrpdiag.models import Evidence

from factories import create_context, create_job, create_problem, create_solution, create_vehicle


def test_skill_constraint():
    """Job skills must be a subset of the vehicle skills."""
    problem = create_problem(
        [create_job("J1", skills={"fridge"})],
        [create_vehicle("v1"), create_vehicle("v2", skills={"fridge", "lift"})],
    )
    solution = create_solution()

    assert SkillChecker().evaluate(create_context(problem, solution, "J1", "v1")) == Evidence.violated()
    assert SkillChecker().evaluate(create_context(problem, solution, "J1", "v2")).satisfied


def test_time_window_arrival_after_window_end():
    problem = create_problem([create_job("J1", time_windows=[[0, 400]])], [create_vehicle()])
    ctx = create_context(problem, create_solution(), "J1")

    evidence = TimeWindowChecker().evaluate(ctx)

    assert not evidence.satisfied
    assert evidence.severity == pytest.approx(90)  # arrives 08:10, window closed at 06:40


def test_time_window_opening_after_shift_end():
    problem = create_problem(
        [create_job("J1", time_windows=[["13:00", "14:00"]])],
        [create_vehicle(shift=["08:00", "12:00"])],
    )
    ctx = create_context(problem, create_solution(), "J1")

    evidence = TimeWindowChecker().evaluate(ctx)

    assert not evidence.satisfied
    assert evidence.severity == pytest.approx(60)


def test_time_window_insertion_makes_later_stop_late():
    jobs = [
        create_job("J1", location=2, time_windows=[[480, 500]]),
        create_job("J2", location=1),
    ]
    problem = create_problem(jobs, [create_vehicle()])
    solution = create_solution(routes={"v1": ["J1"]})

    before = TimeWindowChecker().evaluate(create_context(problem, solution, "J2", position=0))
    after = TimeWindowChecker().evaluate(create_context(problem, solution, "J2", position=1))

    assert not before.satisfied
    assert before.severity == pytest.approx(5)
    assert after.satisfied


def test_capacity_constraint_delivery_overflow():
    jobs = [create_job("J1", demand=[6]), create_job("J2", location=2, demand=[5])]
    problem = create_problem(jobs, [create_vehicle(capacity=[10])])
    solution = create_solution(routes={"v1": ["J1"]})

    evidence = CapacityChecker().evaluate(create_context(problem, solution, "J2", position=0))

    assert not evidence.satisfied
    assert evidence.severity == pytest.approx(1)


def test_capacity_pickup_after_delivery_fits():
    """A pickup collected after a delivery is dropped shares the freed space."""
    jobs = [create_job("J1", demand=[6]), create_job("J2", location=2, demand=[5], kind="pickup")]
    problem = create_problem(jobs, [create_vehicle(capacity=[10])])
    solution = create_solution(routes={"v1": ["J1"]})

    assert CapacityChecker().evaluate(create_context(problem, solution, "J2", position=1)).satisfied
    assert not CapacityChecker().evaluate(create_context(problem, solution, "J2", position=0)).satisfied


def test_capacity_missing_dimension_counts_as_zero():
    problem = create_problem([create_job("J1", demand=[1, 2])], [create_vehicle(capacity=[10])])

    evidence = CapacityChecker().evaluate(create_context(problem, create_solution(), "J1"))

    assert evidence == Evidence.violated(2)


def test_reachable_constraint():
    matrix = RouteMatrix(
        durations_minutes=[[0, 10, None], [10, 0, None], [None, None, 0]],
        distances_meters=[[0, 1000, None], [1000, 0, None], [None, None, 0]],
    )
    problem = create_problem([create_job("J1"), create_job("J2", location=2)], [create_vehicle()], matrix)
    solution = create_solution()

    assert ReachableChecker().evaluate(create_context(problem, solution, "J1")).satisfied
    assert ReachableChecker().evaluate(create_context(problem, solution, "J2")) == Evidence.violated()


def test_reachable_open_route_ignores_return_leg():
    matrix = RouteMatrix(
        durations_minutes=[[0, 10], [None, 0]],
        distances_meters=[[0, 1000], [None, 0]],
    )
    problem = create_problem(
        [create_job("J1")],
        [create_vehicle("closed"), create_vehicle("open", end_location=None)],
        matrix,
    )
    solution = create_solution()

    assert not ReachableChecker().evaluate(create_context(problem, solution, "J1", "closed")).satisfied
    assert ReachableChecker().evaluate(create_context(problem, solution, "J1", "open")).satisfied


def test_max_distance_constraint():
    problem = create_problem([create_job("J1")], [create_vehicle(max_distance=1500)])

    evidence = MaxDistanceChecker().evaluate(create_context(problem, create_solution(), "J1"))

    assert evidence == Evidence.violated(500)


def test_shift_time_constraint_end_after_shift():
    problem = create_problem([create_job("J1")], [create_vehicle(shift=[480, 500])])

    evidence = ShiftTimeChecker().evaluate(create_context(problem, create_solution(), "J1"))

    assert evidence == Evidence.violated(5)  # back at the depot at 08:25


def test_shift_time_constraint_max_duration():
    problem = create_problem([create_job("J1")], [create_vehicle(max_duration=20)])

    evidence = ShiftTimeChecker().evaluate(create_context(problem, create_solution(), "J1"))

    assert evidence == Evidence.violated(5)


def test_break_constraint():
    """Taking the break first makes the job late; afterwards the break window is gone."""
    job = create_job("J1", location=3, time_windows=[[500, 520]], break_eligible=False)
    vehicle = create_vehicle(breaks=[{"time_window": [490, 495], "duration": 30}])
    problem = create_problem([job], [vehicle])

    evidence = BreakChecker().evaluate(create_context(problem, create_solution(), "J1"))

    assert not evidence.satisfied
    assert evidence.severity == pytest.approx(30)


def test_break_already_unschedulable_not_attributed():
    jobs = [
        create_job("J1", location=3, time_windows=[[500, 520]], break_eligible=False),
        create_job("J2", location=3),
    ]
    vehicle = create_vehicle(breaks=[{"time_window": [490, 495], "duration": 30}])
    problem = create_problem(jobs, [vehicle])
    solution = create_solution(routes={"v1": ["J1"]})

    assert BreakChecker().evaluate(create_context(problem, solution, "J2", position=1)).satisfied


def test_locking_to_other_vehicle():
    relations = [{"type": "any", "jobs": ["J1"], "vehicle_id": "v2"}]
    problem = create_problem([create_job("J1")], [create_vehicle("v1"), create_vehicle("v2")], relations=relations)
    solution = create_solution()

    assert LockingChecker().evaluate(create_context(problem, solution, "J1", "v1")) == Evidence.violated()
    assert LockingChecker().evaluate(create_context(problem, solution, "J1", "v2")).satisfied


def test_locking_sequence_order():
    relations = [{"type": "sequence", "jobs": ["J1", "J2"], "vehicle_id": "v1"}]
    problem = create_problem([create_job("J1"), create_job("J2", location=2)], [create_vehicle()], relations=relations)
    solution = create_solution(routes={"v1": ["J1"]})

    assert not LockingChecker().evaluate(create_context(problem, solution, "J2", position=0)).satisfied
    assert LockingChecker().evaluate(create_context(problem, solution, "J2", position=1)).satisfied


def test_locking_strict_pair_cannot_be_split():
    jobs = [create_job("J1"), create_job("J2", location=2), create_job("J3", location=3)]
    relations = [{"type": "strict", "jobs": ["J1", "J3"], "vehicle_id": "v1"}]
    problem = create_problem(jobs, [create_vehicle()], relations=relations)
    solution = create_solution(routes={"v1": ["J1", "J3"]})

    assert not LockingChecker().evaluate(create_context(problem, solution, "J2", position=1)).satisfied
    assert LockingChecker().evaluate(create_context(problem, solution, "J2", position=2)).satisfied


def test_priority_constraint():
    jobs = [
        create_job("J1", order=1),
        create_job("J2", location=2, order=2),
        create_job("J3", location=3, order=3),
    ]
    problem = create_problem(jobs, [create_vehicle()])
    solution = create_solution(routes={"v1": ["J1", "J3"]})
    checker = PriorityChecker()

    assert checker.evaluate(create_context(problem, solution, "J2", position=0)) == Evidence.violated(1.0)
    assert checker.evaluate(create_context(problem, solution, "J2", position=1)).satisfied
    assert checker.evaluate(create_context(problem, solution, "J2", position=2)) == Evidence.violated(1.0)


def test_area_constraint_by_coordinates():
    area = {"id": "north", "shape": [[0, 0], [0, 1], [1, 1], [1, 0]]}
    jobs = [
        create_job("inside", coordinates={"lat": 0.5, "lon": 0.5}),
        create_job("outside", coordinates={"lat": 2.0, "lon": 0.5}),
        create_job("unknown"),
    ]
    problem = create_problem(jobs, [create_vehicle(allowed_areas=[area])])
    solution = create_solution()
    checker = AreaChecker()

    assert checker.evaluate(create_context(problem, solution, "inside")).satisfied
    assert checker.evaluate(create_context(problem, solution, "outside")) == Evidence.violated()
    assert checker.evaluate(create_context(problem, solution, "unknown")).satisfied  # not evaluable


def test_area_constraint_by_area_ids():
    area = {"id": "north", "shape": [[0, 0], [0, 1], [1, 1], [1, 0]]}
    jobs = [create_job("J1", area_ids={"south"}), create_job("J2", area_ids={"north"})]
    problem = create_problem(jobs, [create_vehicle(allowed_areas=[area])])
    solution = create_solution()

    assert not AreaChecker().evaluate(create_context(problem, solution, "J1")).satisfied
    assert AreaChecker().evaluate(create_context(problem, solution, "J2")).satisfied


def test_dispatch_window_outside_shift():
    vehicle = create_vehicle(shift=[480, 600], dispatch={"time_window": [700, 720], "duration": 10})
    problem = create_problem([create_job("J1")], [vehicle])

    evidence = DispatchChecker().evaluate(create_context(problem, create_solution(), "J1"))

    assert evidence == Evidence.violated(100)


def test_dispatch_too_late_for_job_window():
    vehicle = create_vehicle(dispatch={"time_window": [480, 490], "duration": 30})
    problem = create_problem([create_job("J1", time_windows=[[480, 500]])], [vehicle])

    evidence = DispatchChecker().evaluate(create_context(problem, create_solution(), "J1"))

    assert evidence == Evidence.violated(20)  # ready 08:30, +10 travel, window closed 08:20


def test_tour_size_constraint():
    problem = create_problem([create_job("J1"), create_job("J2")], [create_vehicle(max_tour_size=1)])

    full = create_context(problem, create_solution(routes={"v1": ["J1"]}), "J2", position=1)
    empty = create_context(problem, create_solution(), "J2")

    assert TourSizeChecker().evaluate(full) == Evidence.violated(1.0)
    assert TourSizeChecker().evaluate(empty).satisfied


def test_time_window_stop_already_late_not_attributed():
    jobs = [
        create_job("J1", time_windows=[[480, 485]]),
        create_job("J2", location=2),
    ]
    problem = create_problem(jobs, [create_vehicle()])
    solution = create_solution(routes={"v1": ["J1"]})

    after = TimeWindowChecker().evaluate(create_context(problem, solution, "J2", position=1))
    before = TimeWindowChecker().evaluate(create_context(problem, solution, "J2", position=0))

    assert after.satisfied  # J1 is 5 min late either way
    assert not before.satisfied
    assert before.severity == pytest.approx(25)  # J1 arrives 08:35 instead of 08:10


def test_shift_time_existing_overrun_not_attributed():
    jobs = [create_job("J1", location=2), create_job("J2", location=2)]
    problem = create_problem(jobs, [create_vehicle(shift=[480, 500])])
    solution = create_solution(routes={"v1": ["J1"]})

    evidence = ShiftTimeChecker().evaluate(create_context(problem, solution, "J2", position=1))

    assert evidence == Evidence.violated(5)  # route already ends 08:45, now 08:50


def test_max_distance_existing_overrun_not_attributed():
    jobs = [create_job("J1", location=2), create_job("J2", location=2)]
    problem = create_problem(jobs, [create_vehicle(max_distance=3000)])
    solution = create_solution(routes={"v1": ["J1"]})

    assert MaxDistanceChecker().evaluate(create_context(problem, solution, "J2", position=1)).satisfied


def test_dispatch_location_without_path():
    matrix = RouteMatrix(
        durations_minutes=[[0, 10, None], [10, 0, 10], [None, 10, 0]],
        distances_meters=[[0, 1000, None], [1000, 0, 1000], [None, 1000, 0]],
    )
    vehicle = create_vehicle(dispatch={"location": 2, "time_window": [480, 600], "duration": 10})
    problem = create_problem([create_job("J1")], [vehicle], matrix)
    ctx = create_context(problem, create_solution(), "J1")

    assert DispatchChecker().evaluate(ctx) == Evidence.violated()
    assert TimeWindowChecker().evaluate(ctx).satisfied
    assert ShiftTimeChecker().evaluate(ctx).satisfied
