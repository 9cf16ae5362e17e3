"""
Exceptions raised by the diagnostics pass.
"""


class DiagnosticsError(Exception):
    """Base class for diagnostics failures."""


class ConfigurationError(DiagnosticsError):
    """Configuration file is missing or invalid."""


class UnknownReferenceError(DiagnosticsError):
    """A solution references a job or vehicle the problem does not define."""


class InconsistentSolutionError(DiagnosticsError):
    """The solution contradicts itself, e.g. a job both routed and unassigned."""


class EvaluationInterrupted(DiagnosticsError):
    """Evaluation of a single job ran past its deadline."""

    def __init__(self, job_id: str):
        super().__init__(f"Evaluation of job '{job_id}' interrupted by deadline")
        self.job_id = job_id
