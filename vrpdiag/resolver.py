"""
Reduces the violation evidence of one job to a single reason code.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .evaluator import JobEvaluation
from .models import ReasonCode, ViolationRecord
from .registry import ConstraintRegistry, describe
from .schemas import TieBreakPolicy


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Winning reason for an unassigned job."""
    code: ReasonCode
    description: str
    vehicle_id: Optional[str] = None
    severity: Optional[float] = None

    @classmethod
    def unknown(cls) -> "Resolution":
        return cls(ReasonCode.NO_REASON_FOUND, describe(ReasonCode.NO_REASON_FOUND))


class ReasonResolver:
    """Picks the highest-priority violated code, then a representative vehicle."""

    def __init__(self, registry: ConstraintRegistry, tie_break: TieBreakPolicy = TieBreakPolicy.NEAREST_MISS):
        self.registry = registry
        self.tie_break = tie_break

    def resolve(self, evaluation: JobEvaluation, fleet_order: Optional[Dict[str, int]] = None) -> Resolution:
        """
        Resolve one job's evidence into its reason.

        Args:
            evaluation: Records collected by the feasibility evaluator
            fleet_order: vehicle id -> fleet position, used for tie-breaks

        Returns:
            Resolution with the fixed description of the winning code
        """
        violated = [r for r in evaluation.records if not r.evidence.satisfied]
        if not violated:
            logger.debug(f"Job {evaluation.job_id}: no violated constraint found")
            return Resolution.unknown()

        if evaluation.all_unreachable:
            code = ReasonCode.REACHABLE_CONSTRAINT
        else:
            code = min((r.code for r in violated), key=self.registry.rank)

        candidates = [r for r in violated if r.code == code]
        chosen = self._pick(candidates, fleet_order or {})
        logger.debug(f"Job {evaluation.job_id}: {code.value} (vehicle {chosen.vehicle_id})")
        return Resolution(code, self.registry.describe(code), chosen.vehicle_id, chosen.severity)

    def _pick(self, candidates: List[ViolationRecord], fleet_order: Dict[str, int]) -> ViolationRecord:
        def fleet_pos(record: ViolationRecord) -> int:
            return fleet_order.get(record.vehicle_id, len(fleet_order))

        if self.tie_break == TieBreakPolicy.FLEET_ORDER:
            return min(candidates, key=fleet_pos)

        def nearest_miss(record: ViolationRecord):
            severity = record.severity
            return (severity is None, severity if severity is not None else 0.0, fleet_pos(record))

        return min(candidates, key=nearest_miss)
