"""
Unassigned-job report: one reason per leftover job, in input job order.
"""

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional

from .evaluator import FeasibilityEvaluator
from .exceptions import EvaluationInterrupted, InconsistentSolutionError
from .models import ReasonCode, Solution, UnassignedEntry
from .resolver import ReasonResolver, Resolution
from .schemas import DiagnosticsConfig, ReasonResponse, UnassignedJobResponse


logger = logging.getLogger(__name__)


@dataclass
class UnassignedReport:
    """Ordered unassigned entries ready to be attached to a solution."""
    entries: List[UnassignedEntry]
    elapsed_seconds: float = 0.0

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def job_ids(self) -> List[str]:
        return [entry.job_id for entry in self.entries]

    def by_code(self) -> Dict[ReasonCode, List[str]]:
        grouped: Dict[ReasonCode, List[str]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.code, []).append(entry.job_id)
        return grouped

    def responses(self) -> List[UnassignedJobResponse]:
        return [
            UnassignedJobResponse(
                job_id=entry.job_id,
                reasons=[ReasonResponse(code=entry.code, description=entry.description)],
            )
            for entry in self.entries
        ]

    def to_fragment(self) -> List[dict]:
        """The `unassigned` array of the solution output."""
        return [response.model_dump(mode="json", by_alias=True) for response in self.responses()]

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_fragment(), indent=indent)


class UnassignedReportBuilder:
    """Explains every job the optimizer left unassigned."""

    def __init__(
        self,
        evaluator: FeasibilityEvaluator,
        resolver: ReasonResolver,
        config: Optional[DiagnosticsConfig] = None
    ):
        self.evaluator = evaluator
        self.resolver = resolver
        self.config = config or evaluator.config

    def build(self, solution: Optional[Solution] = None, deadline: Optional[float] = None) -> UnassignedReport:
        """
        Build the report for all leftover jobs of the solution.

        Args:
            solution: Final solution (defaults to the one the evaluator was built on)
            deadline: time.monotonic() value after which remaining jobs get NO_REASON_FOUND

        Returns:
            Report with exactly one entry per leftover job

        Raises:
            UnknownReferenceError: solution names a job or vehicle the problem lacks
            InconsistentSolutionError: a leftover job is also routed
        """
        solution = solution or self.evaluator.solution
        started = time.monotonic()
        if deadline is None and self.config.time_limit_seconds is not None:
            deadline = started + self.config.time_limit_seconds

        job_ids = self.leftover_jobs(solution)
        logger.info(f"Explaining {len(job_ids)} unassigned jobs with {self.config.max_workers} worker(s)")

        if self.config.max_workers <= 1 or len(job_ids) <= 1:
            entries = [self._explain(job_id, deadline) for job_id in job_ids]
        else:
            entries: List[Optional[UnassignedEntry]] = [None] * len(job_ids)
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = {
                    executor.submit(self._explain, job_id, deadline): idx
                    for idx, job_id in enumerate(job_ids)
                }
                for future, idx in futures.items():
                    entries[idx] = future.result()

        elapsed = time.monotonic() - started
        report = UnassignedReport(entries=entries, elapsed_seconds=elapsed)
        logger.info(f"Unassigned report ready: {len(report)} jobs in {elapsed:.3f}s")
        return report

    def leftover_jobs(self, solution: Solution) -> List[str]:
        """Validated, de-duplicated leftover job ids in input job order."""
        problem = self.evaluator.problem
        for route in solution.routes:
            problem.get_vehicle(route.vehicle_id)
            for stop in route.stops:
                problem.get_job(stop.job_id)
        for hints in solution.search_violations.values():
            for hint in hints:
                if hint.vehicle_id is not None:
                    problem.get_vehicle(hint.vehicle_id)

        unique = []
        for job_id in solution.unassigned:
            problem.get_job(job_id)
            if job_id not in unique:
                unique.append(job_id)
        if len(unique) != len(solution.unassigned):
            logger.warning(f"Dropped {len(solution.unassigned) - len(unique)} duplicate unassigned job id(s)")

        routed = solution.assigned_job_ids()
        both = [job_id for job_id in unique if job_id in routed]
        if both:
            raise InconsistentSolutionError(f"Jobs both routed and unassigned: {both}")

        return sorted(unique, key=problem.job_index.__getitem__)

    def _explain(self, job_id: str, deadline: Optional[float]) -> UnassignedEntry:
        """Evaluate and resolve one job; never raises for per-job failures."""
        job = self.evaluator.problem.get_job(job_id)
        try:
            evaluation = self.evaluator.evaluate(job, deadline)
            resolution = self.resolver.resolve(evaluation, self.evaluator.fleet_index)
        except EvaluationInterrupted as e:
            logger.warning(str(e))
            resolution = Resolution.unknown()
        except Exception as e:
            logger.error(f"Evaluation of job {job_id} failed: {e}", exc_info=True)
            resolution = Resolution.unknown()

        return UnassignedEntry(
            job_id=job_id,
            code=resolution.code,
            description=resolution.description,
            vehicle_id=resolution.vehicle_id,
            severity=resolution.severity,
        )
