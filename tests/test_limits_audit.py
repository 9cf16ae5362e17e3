"""
Tests for the route limits audit.
"""

import pytest

from vrpdiag.audit.limits_audit import check_limits
from vrpdiag.models import Route, Solution

from factories import create_job, create_problem, create_solution, create_vehicle


def create_audit_problem(**limits):
    jobs = [create_job("job1"), create_job("job2"), create_job("job3")]
    return create_problem(jobs, [create_vehicle("some_real_vehicle", **limits)])


@pytest.mark.parametrize("max_distance,max_duration,actual,prefix", [
    (10, None, 11, "max distance limit"),
    (10, None, 10, None),
    (10, None, 9, None),
    (None, 10, 11, "shift time limit"),
    (None, 10, 10, None),
    (None, 10, 9, None),
    (None, None, 10 ** 9, None),
])
def test_can_check_shift_and_distance_limit(max_distance, max_duration, actual, prefix):
    problem = create_audit_problem(max_distance=max_distance, max_duration=max_duration)
    solution = Solution(routes=[Route(vehicle_id="some_real_vehicle", distance=actual, duration=actual)])

    violations = check_limits(problem, solution)

    if prefix is None:
        assert violations == []
    else:
        assert [v.message for v in violations] == [
            f"{prefix} violation, expected: not more than 10, got: {actual}, vehicle id 'some_real_vehicle'"
        ]


def test_can_check_tour_size_limit():
    problem = create_audit_problem(max_tour_size=2)
    solution = create_solution(routes={"some_real_vehicle": ["job1", "job2", "job3"]})

    violations = check_limits(problem, solution)

    assert [v.message for v in violations] == [
        "tour size limit violation, expected: not more than 2, got: 3, vehicle id 'some_real_vehicle'"
    ]


def test_totals_recomputed_when_not_reported():
    problem = create_audit_problem(max_distance=1500)
    solution = create_solution(routes={"some_real_vehicle": ["job1"]})

    violations = check_limits(problem, solution)

    assert len(violations) == 1
    assert violations[0].actual == 2000
    assert str(violations[0]).startswith("max distance limit violation")
