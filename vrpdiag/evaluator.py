"""
Feasibility evaluator: re-checks every constraint for an unassigned job
against every vehicle route of the final solution.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .constraints import ConstraintChecker, InsertionContext
from .exceptions import EvaluationInterrupted, InconsistentSolutionError
from .models import Evidence, Job, Problem, ReasonCode, Route, Solution, ViolationRecord
from .registry import PRIORITY_ORDER, ConstraintRegistry, rank
from .schedule import RouteState
from .schemas import DiagnosticsConfig
from .util.time_utils import format_minutes


logger = logging.getLogger(__name__)

TIME_DISTANCE_TOLERANCE = 1.0  # minutes or meters
LOAD_TOLERANCE = 1e-6


@dataclass
class PositionResult:
    """Checker outcomes for one insertion position."""
    position: int
    violations: Dict[ReasonCode, Evidence] = field(default_factory=dict)
    complete: bool = True  # False when evaluation stopped at the first violation

    @property
    def feasible(self) -> bool:
        return self.complete and not self.violations


@dataclass
class VehicleOutcome:
    """Violation evidence for one (job, vehicle) pair."""
    vehicle_id: str
    records: List[ViolationRecord]
    unreachable: bool = False
    feasible: bool = False


@dataclass
class JobEvaluation:
    """All violation evidence collected for one job across the fleet."""
    job_id: str
    records: List[ViolationRecord]
    vehicles_evaluated: List[str]
    unreachable_vehicles: List[str]
    feasible_vehicles: List[str]

    @property
    def all_unreachable(self) -> bool:
        """True when no vehicle can reach the job at all."""
        return bool(self.vehicles_evaluated) and len(self.unreachable_vehicles) == len(self.vehicles_evaluated)

    @property
    def codes(self) -> List[ReasonCode]:
        seen: List[ReasonCode] = []
        for record in self.records:
            if record.code not in seen:
                seen.append(record.code)
        return seen


def _severity_key(evidence: Evidence) -> Tuple[bool, float]:
    """Sort key: numeric severities first (ascending), binary ones after."""
    if evidence.severity is None:
        return (True, 0.0)
    return (False, evidence.severity)


class FeasibilityEvaluator:
    """Evaluates unassigned jobs against a read-only solution snapshot."""

    def __init__(
        self,
        problem: Problem,
        solution: Solution,
        registry: Optional[ConstraintRegistry] = None,
        config: Optional[DiagnosticsConfig] = None
    ):
        """
        Prepare per-vehicle route states once; they are shared by all jobs.

        Args:
            problem: Jobs, fleet, relations and matrices
            solution: Final optimizer solution (routes and leftover jobs)
            registry: Constraint catalog (defaults to the full one)
            config: Diagnostics settings
        """
        self.problem = problem
        self.solution = solution
        self.config = config or DiagnosticsConfig()
        self.registry = registry or ConstraintRegistry.default(self.config.disabled_codes)
        self.fleet_index = {vehicle.id: i for i, vehicle in enumerate(problem.fleet)}
        self.states = self._build_route_states()

        self._reachability = self.registry.get(ReasonCode.REACHABLE_CONSTRAINT)
        self._route_checkers = self.registry.route_checkers()
        self._ordered_checkers = [
            c for c in self.registry if c.code != ReasonCode.REACHABLE_CONSTRAINT
        ]

    def _build_route_states(self) -> Dict[str, RouteState]:
        """Build route states for every vehicle, unused ones with an empty route."""
        routes = {}
        for route in self.solution.routes:
            vehicle = self.problem.get_vehicle(route.vehicle_id)
            if vehicle.id in routes:
                raise InconsistentSolutionError(f"Vehicle '{vehicle.id}' has more than one route")
            routes[vehicle.id] = route

        # touch lazily built lookups before any worker threads share them
        _ = self.problem.job_index, self.problem.relations_by_job, self.problem.relations_by_vehicle

        states = {}
        for vehicle in self.problem.fleet:
            route = routes.get(vehicle.id)
            jobs = [self.problem.get_job(stop.job_id) for stop in route.stops] if route else []
            state = RouteState.build(
                vehicle, self.problem.matrix_for(vehicle), jobs,
                start_time=route.start_time if route else None
            )
            _ = state.job_positions, state.base_break_overruns, state.base_lateness
            if not state.base.reachable:
                logger.warning(f"Route of vehicle {vehicle.id} contains a leg without a path")
            else:
                logger.debug(
                    f"Vehicle {vehicle.id}: {state.size} stops, "
                    f"{format_minutes(state.base.start_time)}-{format_minutes(state.base.end_time)}"
                )
                if route:
                    self._check_reported_stops(route, state)
            states[vehicle.id] = state
        logger.debug(f"Prepared route states for {len(states)} vehicles")
        return states

    @staticmethod
    def _check_reported_stops(route: Route, state: RouteState) -> None:
        """Warn when reported stop figures disagree with the recomputed route."""
        for k, (stop, scheduled) in enumerate(zip(route.stops, state.base.stops)):
            expected = {
                "arrival": scheduled.arrival,
                "departure": scheduled.departure,
                "distance": scheduled.distance,
            }
            for name, value in expected.items():
                reported = getattr(stop, name)
                if reported is not None and abs(reported - value) > TIME_DISTANCE_TOLERANCE:
                    logger.warning(
                        f"Vehicle {state.vehicle.id} stop {stop.job_id}: reported {name} {reported:g}, "
                        f"recomputed {value:g}"
                    )
            if stop.load:
                load = state.loads[k + 1]
                dims = max(len(stop.load), len(load))
                reported = list(stop.load) + [0.0] * (dims - len(stop.load))
                recomputed = list(load) + [0.0] * (dims - len(load))
                if any(abs(r - c) > LOAD_TOLERANCE for r, c in zip(reported, recomputed)):
                    logger.warning(
                        f"Vehicle {state.vehicle.id} stop {stop.job_id}: reported load {reported}, "
                        f"recomputed {recomputed}"
                    )

    def evaluate(self, job: Job, deadline: Optional[float] = None) -> JobEvaluation:
        """
        Collect violation evidence for a job across all vehicles.

        Args:
            job: The unassigned job
            deadline: Optional time.monotonic() value after which evaluation stops

        Returns:
            Violations of the closest-to-feasible position of each vehicle

        Raises:
            EvaluationInterrupted: deadline passed before all vehicles were evaluated
        """
        records: List[ViolationRecord] = []
        evaluated, unreachable, feasible = [], [], []

        for vehicle in self.problem.fleet:
            if deadline is not None and time.monotonic() > deadline:
                raise EvaluationInterrupted(job.id)
            outcome = self.evaluate_vehicle(job, self.states[vehicle.id])
            evaluated.append(vehicle.id)
            records.extend(outcome.records)
            if outcome.unreachable:
                unreachable.append(vehicle.id)
            if outcome.feasible:
                feasible.append(vehicle.id)

        if self.config.use_search_evidence:
            records = self._merge_search_evidence(job, records)

        records.sort(key=self._record_order)
        if feasible:
            logger.debug(f"Job {job.id} fits vehicles {feasible} in the final solution")
        return JobEvaluation(
            job_id=job.id,
            records=records,
            vehicles_evaluated=evaluated,
            unreachable_vehicles=unreachable,
            feasible_vehicles=feasible,
        )

    def evaluate_vehicle(self, job: Job, state: RouteState) -> VehicleOutcome:
        """Evaluate every insertion position of one vehicle's route."""
        vehicle_id = state.vehicle.id
        contexts = [InsertionContext(job, state, position, self.problem) for position in state.positions()]

        if self._reachability is not None:
            contexts = [ctx for ctx in contexts if self._is_reachable(ctx)]
            if not contexts:
                record = ViolationRecord(
                    code=ReasonCode.REACHABLE_CONSTRAINT,
                    evidence=Evidence.violated(),
                    vehicle_id=vehicle_id,
                    position=None,
                )
                return VehicleOutcome(vehicle_id, [record], unreachable=True)

        route_evidence = self._run_route_checkers(contexts[0])

        if self.config.exhaustive:
            results = [self._run_position(ctx, route_evidence, stop_early=False) for ctx in contexts]
        else:
            results = [self._run_position(ctx, route_evidence, stop_early=True) for ctx in contexts]
            nearest = min(results, key=self._early_stop_key)
            if not nearest.complete:
                ctx = next(c for c in contexts if c.position == nearest.position)
                results.append(self._run_position(ctx, route_evidence, stop_early=False))

        nearest = min((r for r in results if r.complete), key=self._closeness_key)
        records = [
            ViolationRecord(code, evidence, vehicle_id, nearest.position)
            for code, evidence in nearest.violations.items()
        ]
        return VehicleOutcome(vehicle_id, records, feasible=nearest.feasible)

    def _is_reachable(self, ctx: InsertionContext) -> bool:
        evidence = self._safe_evaluate(self._reachability, ctx)
        return evidence is None or evidence.satisfied

    def _run_route_checkers(self, ctx: InsertionContext) -> Dict[ReasonCode, Optional[Evidence]]:
        """Position-independent checkers, evaluated once per vehicle."""
        return {checker.code: self._safe_evaluate(checker, ctx) for checker in self._route_checkers}

    def _run_position(
        self,
        ctx: InsertionContext,
        route_evidence: Dict[ReasonCode, Optional[Evidence]],
        stop_early: bool
    ) -> PositionResult:
        """Run checkers in priority order at one position."""
        result = PositionResult(position=ctx.position)
        for checker in self._ordered_checkers:
            if checker.code in route_evidence:
                evidence = route_evidence[checker.code]
            else:
                evidence = self._safe_evaluate(checker, ctx)
            if evidence is None or evidence.satisfied:
                continue
            result.violations[checker.code] = evidence
            if stop_early:
                result.complete = False
                break
        else:
            result.complete = True
        return result

    def _safe_evaluate(self, checker: ConstraintChecker, ctx: InsertionContext) -> Optional[Evidence]:
        """Evaluate a checker; a failing checker means the dimension is not evaluable."""
        try:
            return checker.evaluate(ctx)
        except (ValueError, TypeError, ArithmeticError, LookupError) as e:
            logger.warning(
                f"{checker.code.value} not evaluable for job {ctx.job.id} "
                f"on vehicle {ctx.vehicle.id} at position {ctx.position}: {e}"
            )
            return None

    def _early_stop_key(self, result: PositionResult):
        """Closest-to-feasible position when evaluation stops at the first violation."""
        if not result.violations:
            return (0, 0, (False, 0.0), result.position)
        code, evidence = next(iter(result.violations.items()))
        # a later first violation means more checkers passed
        return (1, -rank(code), _severity_key(evidence), result.position)

    def _closeness_key(self, result: PositionResult):
        """Fewest violations, then lowest severity vector in priority order, then lowest position."""
        severities = tuple(
            _severity_key(result.violations[code]) if code in result.violations else (False, 0.0)
            for code in PRIORITY_ORDER
        )
        return (len(result.violations), severities, result.position)

    def _merge_search_evidence(self, job: Job, records: List[ViolationRecord]) -> List[ViolationRecord]:
        """Add violations the optimizer recorded during search for this job."""
        hints = self.solution.search_violations.get(job.id, [])
        if not hints:
            return records

        merged = {(r.vehicle_id, r.code): r for r in records}
        disabled = set(self.config.disabled_codes)
        for hint in hints:
            if hint.code == ReasonCode.NO_REASON_FOUND or hint.code in disabled:
                continue
            evidence = Evidence.violated(hint.severity)
            key = (hint.vehicle_id, hint.code)
            current = merged.get(key)
            if current is None or _severity_key(evidence) < _severity_key(current.evidence):
                merged[key] = ViolationRecord(hint.code, evidence, hint.vehicle_id, None)
        logger.debug(f"Merged {len(hints)} search violation(s) for job {job.id}")
        return list(merged.values())

    def _record_order(self, record: ViolationRecord):
        fleet_pos = self.fleet_index.get(record.vehicle_id, len(self.fleet_index))
        position = -1 if record.position is None else record.position
        return (rank(record.code), fleet_pos, position)
