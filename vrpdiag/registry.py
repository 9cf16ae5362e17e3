"""
Reason taxonomy and the ordered catalog of constraint checkers.
"""

import logging
from typing import Dict, Iterable, List, Optional

from .constraints import (
    AreaChecker, BreakChecker, CapacityChecker, CheckScope, ConstraintChecker,
    DispatchChecker, LockingChecker, MaxDistanceChecker, PriorityChecker,
    ReachableChecker, ShiftTimeChecker, SkillChecker, TimeWindowChecker,
    TourSizeChecker,
)
from .models import ReasonCode


logger = logging.getLogger(__name__)


REASON_DESCRIPTIONS: Dict[ReasonCode, str] = {
    ReasonCode.NO_REASON_FOUND: "unknown",
    ReasonCode.SKILL_CONSTRAINT: "cannot serve required skill",
    ReasonCode.TIME_WINDOW_CONSTRAINT: "cannot be visited within time window",
    ReasonCode.CAPACITY_CONSTRAINT: "does not fit into any vehicle due to capacity",
    ReasonCode.REACHABLE_CONSTRAINT: "location unreachable",
    ReasonCode.MAX_DISTANCE_CONSTRAINT: "cannot be assigned due to max distance constraint of vehicle",
    ReasonCode.SHIFT_TIME_CONSTRAINT: "cannot be assigned due to shift time constraint of vehicle",
    ReasonCode.BREAK_CONSTRAINT: "break is not assignable",
    ReasonCode.LOCKING_CONSTRAINT: "cannot be served due to relation lock",
    ReasonCode.PRIORITY_CONSTRAINT: "cannot be served due to priority",
    ReasonCode.AREA_CONSTRAINT: "cannot be assigned due to area constraint",
    ReasonCode.DISPATCH_CONSTRAINT: "cannot be assigned due to vehicle dispatch",
    ReasonCode.TOUR_SIZE_CONSTRAINT: "cannot be assigned due to tour size constraint of vehicle",
}

# Most fundamental / actionable defect first. Reordering reasons happens here only.
PRIORITY_ORDER: List[ReasonCode] = [
    ReasonCode.SKILL_CONSTRAINT,
    ReasonCode.REACHABLE_CONSTRAINT,
    ReasonCode.TIME_WINDOW_CONSTRAINT,
    ReasonCode.CAPACITY_CONSTRAINT,
    ReasonCode.MAX_DISTANCE_CONSTRAINT,
    ReasonCode.SHIFT_TIME_CONSTRAINT,
    ReasonCode.BREAK_CONSTRAINT,
    ReasonCode.LOCKING_CONSTRAINT,
    ReasonCode.PRIORITY_CONSTRAINT,
    ReasonCode.AREA_CONSTRAINT,
    ReasonCode.DISPATCH_CONSTRAINT,
    ReasonCode.TOUR_SIZE_CONSTRAINT,
]

_RANKS: Dict[ReasonCode, int] = {code: rank for rank, code in enumerate(PRIORITY_ORDER)}

DEFAULT_CHECKERS = (
    SkillChecker,
    ReachableChecker,
    TimeWindowChecker,
    CapacityChecker,
    MaxDistanceChecker,
    ShiftTimeChecker,
    BreakChecker,
    LockingChecker,
    PriorityChecker,
    AreaChecker,
    DispatchChecker,
    TourSizeChecker,
)


def describe(code: ReasonCode) -> str:
    """Fixed human-readable description of a reason code."""
    return REASON_DESCRIPTIONS[code]


def rank(code: ReasonCode) -> int:
    """Position of a code in the resolver priority order (lower wins)."""
    return _RANKS.get(code, len(PRIORITY_ORDER))


class ConstraintRegistry:
    """Ordered catalog binding each reason code to one checker."""

    def __init__(self, checkers: Iterable[ConstraintChecker]):
        ordered = sorted(checkers, key=lambda checker: rank(checker.code))
        codes = [checker.code for checker in ordered]
        if len(set(codes)) != len(codes):
            raise ValueError(f"Each reason code may have only one checker, got {codes}")
        if ReasonCode.NO_REASON_FOUND in codes:
            raise ValueError("NO_REASON_FOUND is a fallback and cannot have a checker")
        self._checkers: List[ConstraintChecker] = ordered

    @classmethod
    def default(cls, disabled: Optional[Iterable[ReasonCode]] = None) -> "ConstraintRegistry":
        """Full catalog, minus any codes switched off in configuration."""
        disabled = set(disabled or ())
        if disabled:
            logger.info(f"Constraint checkers disabled: {sorted(code.value for code in disabled)}")
        return cls(checker_cls() for checker_cls in DEFAULT_CHECKERS if checker_cls.code not in disabled)

    def __iter__(self):
        return iter(self._checkers)

    def __len__(self) -> int:
        return len(self._checkers)

    def __contains__(self, code: ReasonCode) -> bool:
        return any(checker.code == code for checker in self._checkers)

    @property
    def codes(self) -> List[ReasonCode]:
        return [checker.code for checker in self._checkers]

    def get(self, code: ReasonCode) -> Optional[ConstraintChecker]:
        for checker in self._checkers:
            if checker.code == code:
                return checker
        return None

    def route_checkers(self) -> List[ConstraintChecker]:
        return [c for c in self._checkers if c.scope == CheckScope.ROUTE]

    def activity_checkers(self) -> List[ConstraintChecker]:
        """Position-dependent checkers, reachability excluded (it gates the others)."""
        return [
            c for c in self._checkers
            if c.scope == CheckScope.ACTIVITY and c.code != ReasonCode.REACHABLE_CONSTRAINT
        ]

    def rank(self, code: ReasonCode) -> int:
        return rank(code)

    def describe(self, code: ReasonCode) -> str:
        return describe(code)
