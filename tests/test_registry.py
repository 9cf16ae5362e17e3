"""
Tests for the reason taxonomy and checker catalog.
"""

import pytest

from vrpdiag.constraints import SkillChecker, TourSizeChecker
from vrpdiag.models import ReasonCode
from vrpdiag.registry import PRIORITY_ORDER, REASON_DESCRIPTIONS, ConstraintRegistry, describe, rank


def test_every_code_has_fixed_description():
    assert set(REASON_DESCRIPTIONS) == set(ReasonCode)
    assert describe(ReasonCode.NO_REASON_FOUND) == "unknown"
    assert describe(ReasonCode.TIME_WINDOW_CONSTRAINT) == "cannot be visited within time window"
    assert describe(ReasonCode.CAPACITY_CONSTRAINT) == "does not fit into any vehicle due to capacity"
    assert describe(ReasonCode.REACHABLE_CONSTRAINT) == "location unreachable"


def test_priority_order_is_total_over_checkable_codes():
    assert set(PRIORITY_ORDER) == set(ReasonCode) - {ReasonCode.NO_REASON_FOUND}
    assert PRIORITY_ORDER[0] == ReasonCode.SKILL_CONSTRAINT
    assert PRIORITY_ORDER[-1] == ReasonCode.TOUR_SIZE_CONSTRAINT
    assert rank(ReasonCode.REACHABLE_CONSTRAINT) < rank(ReasonCode.TIME_WINDOW_CONSTRAINT)
    assert rank(ReasonCode.TIME_WINDOW_CONSTRAINT) < rank(ReasonCode.CAPACITY_CONSTRAINT)
    assert rank(ReasonCode.NO_REASON_FOUND) == len(PRIORITY_ORDER)


def test_default_registry_is_ordered_by_priority():
    registry = ConstraintRegistry.default()

    assert len(registry) == 12
    assert registry.codes == PRIORITY_ORDER
    assert ReasonCode.AREA_CONSTRAINT in registry


def test_registry_scopes():
    registry = ConstraintRegistry.default()

    assert [c.code for c in registry.route_checkers()] == [
        ReasonCode.SKILL_CONSTRAINT,
        ReasonCode.AREA_CONSTRAINT,
        ReasonCode.DISPATCH_CONSTRAINT,
        ReasonCode.TOUR_SIZE_CONSTRAINT,
    ]
    activity = [c.code for c in registry.activity_checkers()]
    assert ReasonCode.REACHABLE_CONSTRAINT not in activity
    assert activity[0] == ReasonCode.TIME_WINDOW_CONSTRAINT


def test_disabled_codes_are_left_out():
    registry = ConstraintRegistry.default([ReasonCode.PRIORITY_CONSTRAINT])

    assert len(registry) == 11
    assert ReasonCode.PRIORITY_CONSTRAINT not in registry
    assert registry.get(ReasonCode.PRIORITY_CONSTRAINT) is None


def test_registry_sorts_custom_checkers():
    registry = ConstraintRegistry([TourSizeChecker(), SkillChecker()])

    assert registry.codes == [ReasonCode.SKILL_CONSTRAINT, ReasonCode.TOUR_SIZE_CONSTRAINT]


def test_registry_rejects_duplicate_codes():
    with pytest.raises(ValueError):
        ConstraintRegistry([SkillChecker(), SkillChecker()])
