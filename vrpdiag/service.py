"""
Main service layer for unassigned-job diagnostics.
Orchestrates loading, the limits audit, and report generation.
"""

import json
import logging
import time
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import ValidationError

from .audit.limits_audit import LimitViolation, check_limits
from .evaluator import FeasibilityEvaluator
from .exceptions import ConfigurationError
from .models import Problem, Solution
from .registry import ConstraintRegistry
from .reports import UnassignedReport, UnassignedReportBuilder
from .resolver import ReasonResolver
from .schemas import AppConfig, Settings


logger = logging.getLogger(__name__)


def load_config(config_path: Union[str, Path]) -> AppConfig:
    """Load configuration from YAML file; a missing file means defaults."""
    path = Path(config_path)
    if not path.exists():
        logger.info(f"Config file {path} not found, using defaults")
        return AppConfig()
    try:
        with open(path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
        return AppConfig(**config_data)
    except (yaml.YAMLError, ValidationError, TypeError) as e:
        logger.error(f"Failed to load configuration: {e}")
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e


class DiagnosticsService:
    """Explains why jobs were left out of an optimizer solution."""

    def __init__(self, config_path: Optional[str] = None, config: Optional[AppConfig] = None):
        """Initialize service with configuration."""
        self.settings = Settings()
        self.config = config or load_config(config_path or self.settings.config_path)
        if self.settings.log_level:
            self.config.logging.level = self.settings.log_level
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Setup logging configuration."""
        logging.basicConfig(
            level=getattr(logging, self.config.logging.level),
            format=self.config.logging.format
        )

    def load_problem(self, path: Union[str, Path]) -> Problem:
        with open(path, 'r') as f:
            problem = Problem.model_validate(json.load(f))
        logger.info(f"Loaded problem: {len(problem.jobs)} jobs, {len(problem.fleet)} vehicles")
        return problem

    def load_solution(self, path: Union[str, Path]) -> Solution:
        with open(path, 'r') as f:
            solution = Solution.model_validate(json.load(f))
        logger.info(f"Loaded solution: {len(solution.routes)} routes, {len(solution.unassigned)} unassigned")
        return solution

    def audit(self, problem: Problem, solution: Solution) -> List[LimitViolation]:
        """Check reported routes against vehicle limits."""
        violations = check_limits(problem, solution)
        if violations:
            logger.warning(f"Solution audit found {len(violations)} limit violation(s)")
        return violations

    def explain(self, problem: Problem, solution: Solution) -> UnassignedReport:
        """
        Build the unassigned report for a solution.

        Args:
            problem: Problem definition
            solution: Final solution from the optimizer

        Returns:
            One reason per unassigned job, in input job order
        """
        diagnostics = self.config.diagnostics
        self.audit(problem, solution)

        registry = ConstraintRegistry.default(diagnostics.disabled_codes)
        evaluator = FeasibilityEvaluator(problem, solution, registry, diagnostics)
        resolver = ReasonResolver(registry, diagnostics.tie_break)
        builder = UnassignedReportBuilder(evaluator, resolver, diagnostics)

        deadline = None
        if diagnostics.time_limit_seconds is not None:
            deadline = time.monotonic() + diagnostics.time_limit_seconds
        return builder.build(solution, deadline)

    def write_report(
        self,
        report: UnassignedReport,
        output_path: Union[str, Path],
        solution: Optional[Solution] = None
    ) -> Path:
        """Write the unassigned fragment, or the whole solution with it attached."""
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if solution is None:
            payload = report.to_fragment()
        else:
            payload = solution.model_dump(mode="json", exclude={"unassigned", "search_violations"})
            payload["unassigned"] = report.to_fragment()
        with open(path, 'w') as f:
            json.dump(payload, f, indent=2)
        logger.info(f"Report written to {path}")
        return path
